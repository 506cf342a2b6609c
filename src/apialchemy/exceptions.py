# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""Exception taxonomy for ApiAlchemy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class ApiAlchemyError(RuntimeError):
    """Base class for all ApiAlchemy errors."""


class DeclarationError(ApiAlchemyError):
    """Raised when a record type declaration is incomplete or inconsistent."""


class AttributeUndeclared(ApiAlchemyError, AttributeError):
    """Raised when strict schema membership is demanded for an unknown field."""


class CoercionError(ApiAlchemyError, ValueError):
    """Raised when a typed-cast rule cannot convert a raw value."""


class TransportError(ApiAlchemyError):
    """Raised when the transport cannot complete a request."""


class UnauthorizedError(TransportError):
    """Raised on 401 responses outside the save boundary."""


class BadRequestError(TransportError):
    """Raised on 400 responses outside the save boundary."""

    def __init__(self, body: Any):
        super().__init__(body)
        self.body = body


class RecordNotFound(ApiAlchemyError, LookupError):
    """Raised when an identity lookup yields no record."""


@dataclass(frozen=True)
class ApiError:
    """
    Structured error reported by the server.

    :class: ApiError
    :synopsis: Value object kept on ``record.error_instances``
    """

    code: str
    message: Optional[str] = None

    @property
    def msg(self) -> str:
        return self.message if self.message is not None else self.code

    def __str__(self) -> str:
        return f"{self.code}: {self.msg}"
