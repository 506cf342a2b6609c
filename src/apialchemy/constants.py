# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Constants module for ApiAlchemy ORM.

This module centralizes all constants, configuration values, and literal strings
used throughout the ApiAlchemy codebase. Wire-format keys and error templates
are never spelled out anywhere else.

:module: constants
:synopsis: Centralized constants and configuration for ApiAlchemy ORM
:author: ApiAlchemy Contributors
"""

from __future__ import annotations

from enum import Enum, StrEnum
from typing import Final


# ============================================================================
# TYPE SYSTEM
# ============================================================================

class ApiType(StrEnum):
    """Typed-cast coercion targets supported by the Type Registry."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DATE = "date"
    UUID = "uuid"


class CoercionKind(StrEnum):
    """Variants of a field coercion rule."""

    IDENTITY = "identity"
    CAST = "cast"
    ENUM = "enum"


# ============================================================================
# RELATIONS
# ============================================================================

class RelationKind(StrEnum):
    """
    Relation multiplicity.

    :class: RelationKind
    :synopsis: belongs_to resolves to one record, has_many to a collection
    """

    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"


class RelationState(Enum):
    """Per-instance resolution state of a named relation."""

    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"


class RegistryResolutionConstants:
    """Constants for deferred relation target resolution."""

    TARGET_TYPE_STRING: Final[str] = "string"
    TARGET_TYPE_CLASS: Final[str] = "class"
    TARGET_TYPE_CALLABLE: Final[str] = "callable"


# ============================================================================
# WIRE FORMAT
# ============================================================================

class PayloadConstants:
    """Keys and markers of the REST payloads."""

    TYPE_KEY: Final[str] = "__type"
    CLASS_NAME_KEY: Final[str] = "className"
    POINTER_TYPE: Final[str] = "Pointer"
    DATE_TYPE: Final[str] = "Date"
    DATE_ISO_KEY: Final[str] = "iso"

    OP_KEY: Final[str] = "__op"
    OBJECTS_KEY: Final[str] = "objects"
    OPS_KEY: Final[str] = "ops"
    OP_ADD: Final[str] = "Add"
    OP_REMOVE: Final[str] = "Remove"
    OP_BATCH: Final[str] = "Batch"

    RECORDS_KEY: Final[str] = "records"
    TRANSPORT_ERROR_KEY: Final[str] = "transport"

    ERROR_PATH_SEPARATOR: Final[str] = "."
    FILTER_PARAM: Final[str] = "filter"
    PAGE_SIZE_PARAM: Final[str] = "pageSize"
    FILTER_JOINER: Final[str] = " AND "
    FILTER_EQUALITY: Final[str] = "{field} eq {value}"

    DATETIME_TIMESPEC: Final[str] = "milliseconds"
    UTC_SUFFIX: Final[str] = "Z"
    UTC_OFFSET: Final[str] = "+00:00"


class AuditFieldConstants:
    """Server-authoritative attribute names."""

    CREATED: Final[str] = "created"
    MODIFIED: Final[str] = "modified"


class HttpStatusConstants:
    """Status codes the persistence layer reacts to."""

    BAD_REQUEST: Final[int] = 400
    UNAUTHORIZED: Final[int] = 401
    NOT_FOUND: Final[int] = 404

    SUCCESS: Final[frozenset] = frozenset({200, 201})
    DELETED: Final[frozenset] = frozenset({200, 204})


class ModelMetadataConstants:
    """Class-level attribute names written by the declaration decorator."""

    SCHEMA: Final[str] = "__api_schema__"
    RECORD_NAME: Final[str] = "__api_record_name__"
    IS_RECORD: Final[str] = "__is_api_record__"
    SESSION: Final[str] = "__api_session__"
    ENUM_PREDICATE_PREFIX: Final[str] = "is_"
    ENUM_MUTATOR_PREFIX: Final[str] = "mark_"
    FINDER_PREFIX: Final[str] = "find_by_"
    FINDER_ALL_PREFIX: Final[str] = "find_all_by_"


class DefaultConstants:
    """Library defaults."""

    BASE_RECORD_NAME: Final[str] = "ApiRecord"
    BULK_SLICE_SIZE: Final[int] = 20
    REQUEST_TIMEOUT: Final[float] = 30.0
    PAGE_SIZE: Final[int] = 200
    API_KEY_HEADER: Final[str] = "Api-Key"
    ENV_PREFIX: Final[str] = "APIALCHEMY_"


# ============================================================================
# MESSAGES
# ============================================================================

class ErrorMessages:
    """Error message templates."""

    ID_REF_UNDEFINED: Final[str] = "id_ref has not been defined for {model}"
    RELATION_TARGET_EMPTY: Final[str] = "Class name cannot be empty in {relation}: {model}"
    RELATION_TARGET_NOT_FOUND: Final[str] = "Related record type '{target}' is not declared (relation {relation} on {model})"
    RELATION_TARGET_INVALID: Final[str] = "Relation {relation} on {model} must target an ApiRecord subclass, got {target!r}"
    ATTRIBUTE_UNDECLARED: Final[str] = "Attribute '{name}' has not been defined for {model}"
    INVALID_ENUM_VALUES: Final[str] = "Invalid values for enum {name}"
    REGISTRY_FROZEN: Final[str] = "{registry} for {model} is frozen; declarations are closed"
    COERCION_FAILED: Final[str] = "Cannot coerce {value!r} for field '{name}' to {target}"
    PATH_UNDEFINED: Final[str] = "URL path is not defined for {model}"
    NO_SESSION: Final[str] = "No session bound to {model}; call {model}.use_session(session)"
    RECORD_NOT_FOUND_NO_ID: Final[str] = "Couldn't find {model} without an ID"
    RECORD_NOT_FOUND_ID: Final[str] = "Couldn't find {model} with id: {id}"
    FIND_BY_NO_ARGS: Final[str] = "Couldn't find an object without arguments"
    BULK_IMPORT_UPDATE: Final[str] = "Bulk import can only create records; {model} is already persisted"
    UNAUTHORIZED: Final[str] = "Unauthorized: check the API key"
    RESOURCE_NOT_FOUND: Final[str] = "Resource not found"
    TRANSPORT_FAILED: Final[str] = "{method} {path} failed: {error}"
    SINGLE_RECORD_FAILED: Final[str] = "{code} error while fetching: {body}"
    INVALID_ENUM_VALUE: Final[str] = "has an invalid value"
    MALFORMED_RESPONSE: Final[str] = "Unexpected response body for {model}: {body!r}"


class LoggingConstants:
    """Log message templates."""

    RESOLVING_RELATION: Final[str] = "Resolving %s.%s (%s)"
    RELATION_UNAVAILABLE: Final[str] = "Relation %s.%s unavailable: %s"
    SAVE_FAILED: Final[str] = "Unexpected fault while saving %s; save() returns False"
    SAVE_TRANSPORT_FAILED: Final[str] = "Transport failure while saving %s: %s"
    SAVE_REJECTED: Final[str] = "Save of %s rejected with status %s"
    TRANSPORT_CALL: Final[str] = "%s %s"
