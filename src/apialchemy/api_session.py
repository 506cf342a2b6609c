# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Session management for ApiAlchemy: transport contract, httpx-backed connection
and per-model resources.

A record type reaches the server only through the session bound to it with
``ApiRecord.use_session(session)``. Every request is addressed relative to the
model's resource path (``<path>/`` for collection calls, ``<path>/<id>`` for
identity-addressed calls).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Protocol, Type, TypeVar, runtime_checkable

import httpx

from .api_query import Query
from .config import ApiSettings, get_settings
from .constants import ErrorMessages, HttpStatusConstants, LoggingConstants
from .exceptions import DeclarationError, TransportError

if TYPE_CHECKING:
    from .record import ApiRecord

ModelType = TypeVar("ModelType")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Status code and decoded JSON body of one response."""

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code in HttpStatusConstants.SUCCESS


@runtime_checkable
class Transport(Protocol):
    """Identity-addressed REST calls issued by the persistence layer."""

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> TransportResponse: ...

    def post(self, path: str, body: Any = None) -> TransportResponse: ...

    def patch(self, path: str, body: Any = None) -> TransportResponse: ...

    def delete(self, path: str) -> TransportResponse: ...


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiConnection:
    """httpx-backed :class:`Transport`."""

    def __init__(
        self,
        settings: Optional[ApiSettings] = None,
        *,
        client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Open a connection to the API.

        Args:
            settings: Connection settings; defaults to :func:`get_settings`.
            client: Pre-configured ``httpx.Client`` used as is.
            transport: httpx transport for the client built from ``settings``
                (``httpx.MockTransport`` in tests).
        """
        self.settings = settings or get_settings()
        if client is None:
            headers: Dict[str, str] = {"Accept": "application/json"}
            if self.settings.api_key:
                headers[self.settings.api_key_header] = self.settings.api_key
            client = httpx.Client(
                base_url=self.settings.base_url,
                headers=headers,
                timeout=self.settings.timeout,
                transport=transport,
            )
        self._client = client
        self._lock = RLock()
        self._closed = False

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> TransportResponse:
        """Issue one request; connection and timeout failures raise TransportError."""
        if self._closed:
            raise TransportError(ErrorMessages.TRANSPORT_FAILED.format(method=method, path=path, error="connection closed"))
        logger.debug(LoggingConstants.TRANSPORT_CALL, method, path)
        kwargs: Dict[str, Any] = {}
        if params:
            kwargs["params"] = dict(params)
        if body is not None:
            kwargs["json"] = body
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(ErrorMessages.TRANSPORT_FAILED.format(method=method, path=path, error=e)) from e
        return TransportResponse(response.status_code, _decode_body(response))

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> TransportResponse:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> TransportResponse:
        return self.request("POST", path, body=body)

    def patch(self, path: str, body: Any = None) -> TransportResponse:
        return self.request("PATCH", path, body=body)

    def delete(self, path: str) -> TransportResponse:
        return self.request("DELETE", path)

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._client.close()
                self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        return f"ApiConnection(base_url={self.settings.base_url!r})"


class Resource:
    """A model's collection endpoint; identity-addressed calls append the id."""

    def __init__(self, transport: Transport, path: str):
        self.transport = transport
        self.path = path.strip("/") + "/"

    def _join(self, sub: Any) -> str:
        if sub is None or sub == "":
            return self.path
        return f"{self.path}{sub}"

    def get(self, sub: Any = "", params: Optional[Mapping[str, Any]] = None) -> TransportResponse:
        return self.transport.get(self._join(sub), params)

    def post(self, sub: Any = "", body: Any = None) -> TransportResponse:
        return self.transport.post(self._join(sub), body)

    def patch(self, sub: Any, body: Any = None) -> TransportResponse:
        return self.transport.patch(self._join(sub), body)

    def delete(self, sub: Any) -> TransportResponse:
        return self.transport.delete(self._join(sub))

    def __repr__(self) -> str:
        return f"Resource({self.path!r})"


class ApiSession:
    """
    Owner of one transport and entry point for queries.

    Usable as a context manager; leaving the block closes the transport.
    """

    def __init__(self, transport: Optional[Transport] = None, *, settings: Optional[ApiSettings] = None):
        self.settings = settings or get_settings()
        self.transport: Transport = transport if transport is not None else ApiConnection(self.settings)

    def resource(self, model_class: Type["ApiRecord"]) -> Resource:
        path = model_class.resource_path()
        if not path:
            raise DeclarationError(ErrorMessages.PATH_UNDEFINED.format(model=model_class.__name__))
        return Resource(self.transport, path)

    def query(self, model_class: Type[ModelType]) -> Query[ModelType]:
        return Query(model_class, session=self)

    def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "ApiSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<ApiSession(transport={self.transport!r})>"


__all__ = ["ApiConnection", "ApiSession", "Resource", "Transport", "TransportResponse"]
