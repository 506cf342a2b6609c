# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""ApiAlchemy: typed records over a REST resource collection."""

from .api_orm import (
    ApiRegistry,
    ComputedQualifier,
    RecordSchema,
    RelationSpec,
    StaticQualifier,
    api_alias,
    api_field,
    api_record,
    belongs_to,
    clear_registry,
    get_record_by_name,
    get_registered_records,
    has_many,
    validation_hook,
)
from .api_query import Query
from .record import ApiRecord
from .api_session import ApiConnection, ApiSession, Resource, Transport, TransportResponse
from .api_types import CastRule, EnumRule, IdentityRule, TypeRegistry
from .config import ApiSettings, get_settings
from .constants import ApiType, RelationKind, RelationState
from .exceptions import (
    ApiAlchemyError,
    ApiError,
    AttributeUndeclared,
    BadRequestError,
    CoercionError,
    DeclarationError,
    RecordNotFound,
    TransportError,
    UnauthorizedError,
)
from .relation_array import RelationArray
from .validation import ErrorCollection

__version__ = "0.1.0"

__all__ = [
    "ApiAlchemyError",
    "ApiConnection",
    "ApiError",
    "ApiRecord",
    "ApiRegistry",
    "ApiSession",
    "ApiSettings",
    "ApiType",
    "AttributeUndeclared",
    "BadRequestError",
    "CastRule",
    "CoercionError",
    "ComputedQualifier",
    "DeclarationError",
    "EnumRule",
    "ErrorCollection",
    "IdentityRule",
    "Query",
    "RecordNotFound",
    "RecordSchema",
    "RelationArray",
    "RelationKind",
    "RelationSpec",
    "RelationState",
    "Resource",
    "StaticQualifier",
    "Transport",
    "TransportError",
    "TransportResponse",
    "TypeRegistry",
    "UnauthorizedError",
    "api_alias",
    "api_field",
    "api_record",
    "belongs_to",
    "clear_registry",
    "get_record_by_name",
    "get_registered_records",
    "get_settings",
    "has_many",
    "validation_hook",
]
