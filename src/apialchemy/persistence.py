# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Persistence Coordinator: validate, serialize, send, reconcile.

``save`` never raises: validation failures, rejected requests and unexpected
faults all turn into ``False`` with the reasons left on ``record.errors`` (and
``record.error_instances`` for structured server errors).
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Type, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel, to_snake
from pydantic_core import to_jsonable_python

from .api_types import to_timestamp
from .constants import (
    AuditFieldConstants,
    ErrorMessages,
    HttpStatusConstants,
    LoggingConstants,
    PayloadConstants,
    RelationKind,
)
from .exceptions import ApiAlchemyError, ApiError, BadRequestError, RecordNotFound, TransportError, UnauthorizedError
from .validation import run_validation

if TYPE_CHECKING:
    from .record import ApiRecord
    from .api_session import TransportResponse

logger = logging.getLogger(__name__)


class ErrorPayload(BaseModel):
    """Error body returned by the server on a rejected request."""

    model_config = ConfigDict(extra="ignore")

    code: Optional[Union[int, str]] = None
    error: Optional[str] = None
    message: Optional[str] = None
    errors: Dict[str, Union[List[Any], Any]] = {}

    @classmethod
    def parse(cls, body: Any) -> "ErrorPayload":
        if not isinstance(body, dict):
            return cls()
        try:
            return cls.model_validate(body)
        except ValidationError:
            logger.debug("Unrecognized error body %r", body)
            return cls()


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------

def serialize_value(value: Any) -> Any:
    """Reference descriptors for records, UTC timestamps for dates, JSON-ready otherwise."""
    if hasattr(value, "to_pointer") and callable(value.to_pointer):
        return value.to_pointer()
    if isinstance(value, (datetime.date, datetime.datetime)):
        return to_timestamp(value)
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    if isinstance(value, dict):
        return {key: serialize_value(item) for key, item in value.items()}
    return to_jsonable_python(value)


def camelize_keys(attributes: Dict[str, Any]) -> Dict[str, Any]:
    return {to_camel(key): value for key, value in attributes.items()}


def snake_keys(attributes: Dict[str, Any]) -> Dict[str, Any]:
    return {to_snake(key): value for key, value in attributes.items()}


def _identity(item: Any) -> Any:
    if not hasattr(item, "to_pointer"):
        return None
    value = item.id
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


def diff_collection(saved: Iterable[Any], current: Iterable[Any]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Reference descriptors to add and to remove, matched by identity value.

    Unsaved items (no identity) are skipped on both sides.
    """
    saved_items = [item for item in saved or () if _identity(item) is not None]
    current_items = [item for item in current or () if _identity(item) is not None]
    saved_ids = [_identity(item) for item in saved_items]
    current_ids = [_identity(item) for item in current_items]

    added = [item.to_pointer() for item, ident in zip(current_items, current_ids) if ident not in saved_ids]
    removed = [item.to_pointer() for item, ident in zip(saved_items, saved_ids) if ident not in current_ids]
    return {PayloadConstants.OP_ADD: added, PayloadConstants.OP_REMOVE: removed}


def collection_operation(diff: Dict[str, List[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    """Single wire operation for a diff; Add and Remove together form a Batch."""
    ops = [
        {PayloadConstants.OP_KEY: op, PayloadConstants.OBJECTS_KEY: objects}
        for op, objects in diff.items()
        if objects
    ]
    if not ops:
        return None
    if len(ops) == 1:
        return ops[0]
    return {PayloadConstants.OP_KEY: PayloadConstants.OP_BATCH, PayloadConstants.OPS_KEY: ops}


# -----------------------------------------------------------------------------
# Coordinator
# -----------------------------------------------------------------------------

class PersistenceCoordinator:
    """Save/update/destroy/reload protocol of one record instance."""

    def __init__(self, record: "ApiRecord"):
        self._record = record

    @property
    def record_name(self) -> str:
        return type(self._record).record_name()

    # @@ Payload

    def attributes_for_saving(self) -> Dict[str, Any]:
        """
        Wire payload of the pending changes.

        has_many fields become Add/Remove/Batch operations, never raw arrays;
        the identity field and the audit fields are stripped; keys are
        camelized.
        """
        record = self._record
        store = record._store
        has_many = type(record).schema().relations.of_kind(RelationKind.HAS_MANY)

        payload: Dict[str, Any] = {}
        for name, value in store.pending.items():
            if name in has_many:
                continue
            payload[name] = serialize_value(value)
        payload.update(self.relations_for_saving())

        payload.pop(type(record).schema().id_ref, None)
        payload.pop(AuditFieldConstants.CREATED, None)
        payload.pop(AuditFieldConstants.MODIFIED, None)
        return camelize_keys(payload)

    def relations_for_saving(self) -> Dict[str, Any]:
        store = self._record._store
        operations: Dict[str, Any] = {}
        for name in type(self._record).schema().relations.of_kind(RelationKind.HAS_MANY):
            if name not in store.pending:
                continue
            diff = diff_collection(store.persisted.get(name) or (), store.pending[name] or ())
            operation = collection_operation(diff)
            if operation is not None:
                operations[name] = operation
        return operations

    # @@ Save

    def save(self) -> bool:
        record = self._record
        with record._lock:
            record.error_instances.clear()
            try:
                if not run_validation(record):
                    return False
                if record.new:
                    return self.create()
                return self.update()
            except TransportError as e:
                logger.warning(LoggingConstants.SAVE_TRANSPORT_FAILED, self.record_name, e)
                self.record_error(ApiError(PayloadConstants.TRANSPORT_ERROR_KEY, str(e)))
                return False
            except Exception:
                logger.warning(LoggingConstants.SAVE_FAILED, self.record_name, exc_info=True)
                return False

    def create(self) -> bool:
        record = self._record
        response = type(record).resource().post("", [self.attributes_for_saving()])
        return self.post_result(response)

    def update(self) -> bool:
        record = self._record
        response = type(record).resource().patch(record.id, self.attributes_for_saving())
        return self.post_result(response)

    def post_result(self, response: "TransportResponse") -> bool:
        """Reconcile a 200/201, collect errors of a 400, record any other status."""
        record = self._record
        status = response.status_code
        body = response.body

        if status in HttpStatusConstants.SUCCESS:
            if isinstance(body, list):
                body = body[0] if body else {}
            if not isinstance(body, dict):
                logger.error(ErrorMessages.MALFORMED_RESPONSE.format(model=self.record_name, body=body))
                body = {}
            self.merge_attributes(body)
            return True

        logger.info(LoggingConstants.SAVE_REJECTED, self.record_name, status)
        payload = ErrorPayload.parse(body)
        if status == HttpStatusConstants.BAD_REQUEST and payload.errors:
            for key, messages in payload.errors.items():
                attribute = str(key).split(PayloadConstants.ERROR_PATH_SEPARATOR)[-1]
                if not isinstance(messages, list):
                    messages = [messages]
                for message in messages:
                    record.errors.add(attribute, str(message))
            return False

        detail = payload.error or payload.message
        if detail:
            code = payload.code if payload.code is not None else status
            error = ApiError(str(code), detail)
        else:
            error = ApiError(str(status))
        self.record_error(error)
        return False

    def record_error(self, error: ApiError) -> None:
        self._record.errors.add(error.code, error.msg)
        self._record.error_instances.append(error)

    def merge_attributes(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Server wins for returned fields; relations are re-resolved on next read."""
        record = self._record
        relation_names = tuple(type(record).schema().relations.relations)
        merged = record._store.merge_from_server(snake_keys(body), relation_names)
        record._resolver.invalidate(relation_names)
        return merged

    # @@ Destroy / reload

    def destroy(self) -> bool:
        record = self._record
        with record._lock:
            if record.new:
                return False
            response = type(record).resource().delete(record.id)
            if response.status_code in HttpStatusConstants.DELETED:
                record._store.clear()
                record._resolver.invalidate()
                return True
            return False

    def reload(self) -> Union["ApiRecord", bool]:
        record = self._record
        with record._lock:
            if record.new:
                return False
            fresh = type(record).find(record.id)
            relation_names = type(record).schema().relations.relations
            record._store.reset(
                {name: value for name, value in fresh._store.persisted.items() if name not in relation_names}
            )
            record._resolver.invalidate()
            return record


# -----------------------------------------------------------------------------
# Bulk import
# -----------------------------------------------------------------------------

def merge_all_attributes(records: Sequence["ApiRecord"], response: Sequence[Any]) -> bool:
    for record, item in zip(records, response):
        if isinstance(item, dict):
            record._persistence.merge_attributes(item)
    return True


def bulk_import(
    model_class: Type["ApiRecord"],
    records: Sequence["ApiRecord"],
    slice_size: Optional[int] = None,
) -> List["ApiRecord"]:
    """
    Create ``records`` with one POST per slice.

    Raises:
        ApiAlchemyError: A record is already persisted.
        UnauthorizedError: 401.
        BadRequestError: 400, carrying the parsed body.
        RecordNotFound: 404.
        TransportError: Any other non-success status.
    """
    records = list(records or [])
    if not records:
        return []
    if slice_size is None:
        slice_size = model_class.session().settings.bulk_slice_size

    for start in range(0, len(records), slice_size):
        chunk = records[start : start + slice_size]
        batch = []
        for record in chunk:
            if not record.new:
                raise ApiAlchemyError(ErrorMessages.BULK_IMPORT_UPDATE.format(model=type(record).__name__))
            batch.append(record._persistence.attributes_for_saving())

        response = model_class.resource().post("", batch)
        status = response.status_code
        if status == HttpStatusConstants.UNAUTHORIZED:
            raise UnauthorizedError(ErrorMessages.UNAUTHORIZED)
        if status == HttpStatusConstants.BAD_REQUEST:
            raise BadRequestError(response.body)
        if status == HttpStatusConstants.NOT_FOUND:
            raise RecordNotFound(ErrorMessages.RESOURCE_NOT_FOUND)
        if status not in HttpStatusConstants.SUCCESS:
            raise TransportError(ErrorMessages.SINGLE_RECORD_FAILED.format(code=status, body=response.body))

        body = response.body
        if isinstance(body, list) and len(body) == len(chunk):
            merge_all_attributes(chunk, body)
    return records


__all__ = [
    "ErrorPayload",
    "PersistenceCoordinator",
    "bulk_import",
    "collection_operation",
    "diff_collection",
    "merge_all_attributes",
    "serialize_value",
]
