# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Base class for REST-backed records.

``ApiRecord`` ties the per-instance machinery together: the attribute store,
the association resolver and the persistence coordinator, all guarded by one
re-entrant lock. Subclasses are declared with :func:`~apialchemy.api_orm.api_record`.
"""

from __future__ import annotations

import datetime
import json
import logging
import threading
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Type, TypeVar, Union

from pydantic.alias_generators import to_snake
from pydantic_core import to_jsonable_python

from .api_orm import AliasDescriptor, EnumAction, FinderAction, RecordSchema, RelationSpec, api_record
from .api_query import Query
from .api_types import EnumRule, TypeRegistry, to_timestamp
from .associations import AssociationResolver
from .attribute_store import AttributeStore
from .constants import (
    AuditFieldConstants,
    DefaultConstants,
    ErrorMessages,
    HttpStatusConstants,
    ModelMetadataConstants,
    PayloadConstants,
    RelationKind,
)
from .exceptions import (
    ApiAlchemyError,
    ApiError,
    AttributeUndeclared,
    DeclarationError,
    RecordNotFound,
    TransportError,
)
from .persistence import PersistenceCoordinator, bulk_import
from .relation_array import RelationArray
from .validation import ErrorCollection, run_validation

if TYPE_CHECKING:
    from .api_session import ApiSession, Resource

logger = logging.getLogger(__name__)

RecordType = TypeVar("RecordType", bound="ApiRecord")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class _RecordMeta(type):
    """Class-level dispatch of the generated ``find_by_<field>`` and ``find_all_by_<field>`` finders."""

    def __getattr__(cls, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        for prefix, many in (
            (ModelMetadataConstants.FINDER_ALL_PREFIX, True),
            (ModelMetadataConstants.FINDER_PREFIX, False),
        ):
            if not name.startswith(prefix):
                continue
            action = cls.schema().finders.get(name)
            if action is None:
                # Only the base record accepts names it has not declared
                field_name = name[len(prefix):]
                if not field_name or cls.relation_spec(field_name) is not None or not cls.valid_attribute(field_name):
                    raise AttributeUndeclared(
                        ErrorMessages.ATTRIBUTE_UNDECLARED.format(name=field_name, model=cls.__name__)
                    )
                action = FinderAction(field_name, many)
            return partial(cls._run_finder, action)
        raise AttributeError(f"type object '{cls.__name__}' has no attribute '{name}'")


@api_record(DefaultConstants.BASE_RECORD_NAME, abstract=True)
class ApiRecord(metaclass=_RecordMeta):
    """
    Base record: typed attributes, lazy relations, REST persistence.

    Instances built with ``new=True`` hold their attributes as pending changes;
    ``new=False`` (server data) seeds the persisted buffer instead.
    """

    __api_session__: Optional["ApiSession"] = None

    def __init__(self, attributes: Optional[Mapping[str, Any]] = None, new: bool = True, **kwargs: Any):
        cls = type(self)
        self._lock = threading.RLock()
        self._resolver = AssociationResolver(self)
        self._store = AttributeStore(cls.type_registry(), cls.schema().relations.kinds(), self._resolver.resolve)
        self._persistence = PersistenceCoordinator(self)
        self.errors = ErrorCollection()
        self.error_instances: List[ApiError] = []

        attrs = dict(attributes or {})
        attrs.update(kwargs)
        if new:
            for name, value in attrs.items():
                self._assign(name, value, baseline=False)
        else:
            self._load_server_attributes(attrs)

    def _load_server_attributes(self, attrs: Mapping[str, Any]) -> None:
        relations = type(self).schema().relations
        plain = {}
        for name, value in attrs.items():
            if name in relations:
                if value is not None:
                    self._store.persisted[name] = self._resolver.materialize(name, value)
            else:
                plain[name] = value
        self._store.load(plain)

    @classmethod
    def from_server(cls: Type[RecordType], data: Mapping[str, Any]) -> RecordType:
        """Build a persisted instance from a server payload (camelCase keys)."""
        attrs = {
            to_snake(key): value
            for key, value in data.items()
            if key not in (PayloadConstants.TYPE_KEY, PayloadConstants.CLASS_NAME_KEY)
        }
        return cls(attrs, new=False)

    # ------------------------------------------------------------------
    # Declaration accessors
    # ------------------------------------------------------------------

    @classmethod
    def schema(cls) -> RecordSchema:
        return getattr(cls, ModelMetadataConstants.SCHEMA)

    @classmethod
    def record_name(cls) -> str:
        return cls.schema().name

    @classmethod
    def type_registry(cls) -> TypeRegistry:
        return cls.schema().types

    @classmethod
    def id_ref(cls) -> str:
        id_ref = cls.schema().id_ref
        if not id_ref:
            raise DeclarationError(ErrorMessages.ID_REF_UNDEFINED.format(model=cls.__name__))
        return id_ref

    @classmethod
    def primary_key(cls) -> str:
        return cls.id_ref()

    @classmethod
    def relation_spec(cls, name: str) -> Optional[RelationSpec]:
        return cls.schema().relations.lookup(name)

    @classmethod
    def relation_names(cls) -> Tuple[str, ...]:
        return tuple(cls.schema().relations)

    @classmethod
    def has_many_relations(cls) -> Dict[str, RelationSpec]:
        return cls.schema().relations.of_kind(RelationKind.HAS_MANY)

    @classmethod
    def belongs_to_relations(cls) -> Dict[str, RelationSpec]:
        return cls.schema().relations.of_kind(RelationKind.BELONGS_TO)

    @classmethod
    def resource_path(cls) -> Optional[str]:
        return cls.schema().path

    @classmethod
    def valid_attribute(cls, name: str, raise_exception: bool = False) -> bool:
        """Any name is valid on the base record; subclasses accept declared fields only."""
        if cls.record_name() == DefaultConstants.BASE_RECORD_NAME:
            valid = True
        else:
            valid = name in cls.type_registry()
        if not valid and raise_exception:
            raise AttributeUndeclared(ErrorMessages.ATTRIBUTE_UNDECLARED.format(name=name, model=cls.__name__))
        return valid

    @classmethod
    def alias_attribute(cls, new_name: str, old_name: str) -> None:
        setattr(cls, new_name, AliasDescriptor(old_name))

    # ------------------------------------------------------------------
    # Session and finders
    # ------------------------------------------------------------------

    @classmethod
    def use_session(cls, session: Optional["ApiSession"]) -> None:
        """Bind ``session`` to this type and its subclasses."""
        setattr(cls, ModelMetadataConstants.SESSION, session)

    @classmethod
    def session(cls) -> "ApiSession":
        session = getattr(cls, ModelMetadataConstants.SESSION, None)
        if session is None:
            raise ApiAlchemyError(ErrorMessages.NO_SESSION.format(model=cls.__name__))
        return session

    @classmethod
    def resource(cls) -> "Resource":
        return cls.session().resource(cls)

    @classmethod
    def query(cls: Type[RecordType], session: Optional["ApiSession"] = None) -> Query[RecordType]:
        return Query(cls, session=session)

    @classmethod
    def where(cls: Type[RecordType], filters: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Query[RecordType]:
        return cls.query().where(filters, **kwargs)

    @classmethod
    def additional_query_params(cls: Type[RecordType], params: Mapping[str, Any]) -> Query[RecordType]:
        return cls.query().additional_query_params(params)

    @classmethod
    def execute(cls: Type[RecordType]) -> List[RecordType]:
        return cls.query().execute()

    @classmethod
    def find(cls: Type[RecordType], id_value: Any) -> RecordType:
        if _blank(id_value):
            raise RecordNotFound(ErrorMessages.RECORD_NOT_FOUND_NO_ID.format(model=cls.__name__))
        record = cls.where({cls.id_ref(): id_value}).first()
        if record is None:
            raise RecordNotFound(ErrorMessages.RECORD_NOT_FOUND_ID.format(model=cls.__name__, id=id_value))
        return record

    @classmethod
    def find_by(cls: Type[RecordType], **kwargs: Any) -> Optional[RecordType]:
        if not kwargs:
            raise RecordNotFound(ErrorMessages.FIND_BY_NO_ARGS)
        for name in kwargs:
            cls.valid_attribute(name, raise_exception=True)
        return cls.where(**kwargs).first()

    @classmethod
    def find_all_by(cls: Type[RecordType], name: str, value: Any) -> List[RecordType]:
        cls.valid_attribute(name, raise_exception=True)
        return cls.where({name: value}).all()

    @classmethod
    def _run_finder(cls: Type[RecordType], action: FinderAction, value: Any) -> Any:
        if action.many:
            return cls.find_all_by(action.field, value)
        return cls.find_by(**{action.field: value})

    @classmethod
    def create(cls: Type[RecordType], attributes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RecordType:
        """Instantiate and save; check ``record.persisted`` or ``record.errors`` for the outcome."""
        record = cls(attributes, **kwargs)
        record.save()
        return record

    @classmethod
    def single_record(cls: Type[RecordType]) -> Optional[RecordType]:
        """Fetch a singleton resource; a 404 yields ``None``."""
        response = cls.resource().get("")
        if response.status_code == HttpStatusConstants.NOT_FOUND:
            return None
        if response.status_code not in HttpStatusConstants.SUCCESS:
            raise TransportError(
                ErrorMessages.SINGLE_RECORD_FAILED.format(code=response.status_code, body=response.body)
            )
        body = response.body
        if isinstance(body, list):
            body = body[0] if body else None
        if not isinstance(body, Mapping):
            return None
        return cls.from_server(body)

    @classmethod
    def bulk_import(cls: Type[RecordType], records: Sequence[RecordType], slice_size: Optional[int] = None) -> List[RecordType]:
        return bulk_import(cls, records, slice_size)

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    @classmethod
    def attribute_name(cls, name: str) -> str:
        """Follow an alias to the field it names."""
        descriptor = getattr(cls, name, None)
        if isinstance(descriptor, AliasDescriptor):
            return descriptor.target
        return name

    def get_attribute(self, name: str) -> Any:
        return self._store.get(type(self).attribute_name(name))

    def set_attribute(self, name: str, value: Any) -> Any:
        return self._assign(name, value)

    def _assign(self, name: str, value: Any, baseline: bool = True) -> Any:
        name = type(self).attribute_name(name)
        spec = type(self).relation_spec(name)
        if (
            spec is not None
            and spec.kind is RelationKind.HAS_MANY
            and isinstance(value, (list, tuple))
            and not isinstance(value, RelationArray)
        ):
            value = RelationArray(self, value, name, spec.resolve_target())
        if (
            baseline
            and spec is not None
            and spec.kind is RelationKind.HAS_MANY
            and self.persisted
            and name not in self._store.persisted
            and not self._resolver.is_attempted(name)
        ):
            # Collection diffs need the server-side baseline
            self._resolver.resolve(name)
        return self._store.set(name, value)

    def read_field(self, name: str) -> Any:
        """Attribute value as seen by readers: enum fields expose their symbolic key."""
        value = self.get_attribute(name)
        rule = type(self).type_registry().lookup(name)
        if isinstance(rule, EnumRule):
            return rule.to_key(value)
        return value

    @property
    def attributes(self) -> Dict[str, Any]:
        return self._store.snapshot()

    @attributes.setter
    def attributes(self, values: Mapping[str, Any]) -> None:
        for name, value in (values or {}).items():
            self.set_attribute(name, value)

    @property
    def id(self) -> Any:
        id_ref = type(self).schema().id_ref
        if not id_ref:
            return None
        return self.get_attribute(id_ref)

    @property
    def persisted(self) -> bool:
        return not _blank(self.id)

    @property
    def new(self) -> bool:
        return not self.persisted

    @property
    def created_at(self) -> Optional[datetime.datetime]:
        return self.get_attribute(AuditFieldConstants.CREATED)

    @property
    def updated_at(self) -> Optional[datetime.datetime]:
        return self.get_attribute(AuditFieldConstants.MODIFIED)

    def dirty(self) -> bool:
        return self._store.is_dirty()

    def clean(self) -> bool:
        return not self.dirty()

    def dirty_fields(self) -> List[str]:
        return self._store.dirty_fields()

    def changes(self) -> Dict[str, Any]:
        return self._store.changes()

    # ------------------------------------------------------------------
    # Enum dispatch
    # ------------------------------------------------------------------

    def _enum_predicate(self, action: EnumAction) -> bool:
        rule = type(self).type_registry().lookup(action.field)
        return rule.to_canonical(self.get_attribute(action.field)) == action.value

    def _enum_mutator(self, action: EnumAction) -> bool:
        self.set_attribute(action.field, action.value)
        if self.persisted:
            return self.save()
        return True

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        action = type(self).schema().enum_actions.get(name)
        if action is not None:
            handler = self._enum_mutator if action.mutates else self._enum_predicate
            return partial(handler, action)
        store = self.__dict__.get("_store")
        if store is not None and store.has(name):
            return store.get(name)
        raise AttributeUndeclared(ErrorMessages.ATTRIBUTE_UNDECLARED.format(name=name, model=type(self).__name__))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def valid(self) -> bool:
        return run_validation(self)

    def save(self) -> bool:
        return self._persistence.save()

    def update(self, attributes: Optional[Mapping[str, Any]] = None) -> bool:
        with self._lock:
            self.attributes = attributes or {}
            return self.save()

    def update_attributes(self, attributes: Optional[Mapping[str, Any]] = None) -> bool:
        return self.update(attributes)

    def update_attribute(self, name: str, value: Any) -> bool:
        with self._lock:
            self.set_attribute(name, value)
            return self.save()

    def destroy(self) -> bool:
        return self._persistence.destroy()

    def reload(self) -> Union["ApiRecord", bool]:
        return self._persistence.reload()

    # ------------------------------------------------------------------
    # Identity and rendering
    # ------------------------------------------------------------------

    def to_pointer(self) -> Dict[str, Any]:
        return {
            PayloadConstants.TYPE_KEY: PayloadConstants.POINTER_TYPE,
            PayloadConstants.CLASS_NAME_KEY: type(self).record_name(),
            type(self).id_ref(): to_jsonable_python(self.id),
        }

    def as_json(self, _seen: Optional[Set[int]] = None) -> Dict[str, Any]:
        seen = set() if _seen is None else _seen
        seen.add(id(self))
        return {name: _jsonable(value, seen) for name, value in self._store.snapshot().items()}

    def to_json(self) -> str:
        return json.dumps(self.as_json())

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, ApiRecord):
            return NotImplemented
        if type(other) is not type(self):
            return False
        mine, theirs = self.id, other.id
        if _blank(mine) or _blank(theirs):
            return False
        return mine == theirs

    def __hash__(self) -> int:
        ident = self.id
        if _blank(ident):
            return object.__hash__(self)
        return hash((type(self), ident))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} {self._store.snapshot()!r}>"


def _jsonable(value: Any, seen: Set[int]) -> Any:
    if isinstance(value, ApiRecord):
        if id(value) in seen:
            return value.to_pointer()
        return value.as_json(seen)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item, seen) for item in value]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return to_timestamp(value)
    return to_jsonable_python(value)


__all__ = ["ApiRecord"]
