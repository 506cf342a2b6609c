# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Declarative layer of ApiAlchemy: field and relation declarations, the record
decorator and the record registry.

A record type is declared once::

    @api_record("Invoice", path="Invoices", id_ref="invoice_id")
    class Invoice(ApiRecord):
        invoice_id = api_field()
        invoice_date = api_field(ApiType.DATETIME)
        status = api_field(enum=["Open", "Closed"])
        customer = belongs_to("Company", foreign_key="customer_id", primary_key="company_id")
        lines = has_many("InvoiceLine", foreign_key="invoice_id")

The decorator collects the declarations into a :class:`RecordSchema` whose
Type and Relation registries are frozen, and registers the type by name so
relations may target it with a string.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from .api_types import CoercionRule, EnumRule, TypeRegistry, as_rule
from .constants import (
    ApiType,
    ErrorMessages,
    ModelMetadataConstants,
    RegistryResolutionConstants,
    RelationKind,
)
from .exceptions import DeclarationError

if TYPE_CHECKING:
    from .record import ApiRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

TargetReference = Union[str, Type[Any], Callable[[], Type[Any]]]

_VALIDATION_HOOK_FLAG = "__api_validation_hook__"


# -----------------------------------------------------------------------------
# Polymorphic qualifiers
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class StaticQualifier:
    """Fixed extra filter terms."""

    terms: Mapping[str, Any]

    def evaluate(self, owner: Any) -> Dict[str, Any]:
        return dict(self.terms)


@dataclass(frozen=True)
class ComputedQualifier:
    """Extra filter terms computed from the owning instance."""

    compute: Callable[[Any], Optional[Mapping[str, Any]]]

    def evaluate(self, owner: Any) -> Dict[str, Any]:
        return dict(self.compute(owner) or {})


Qualifier = Union[StaticQualifier, ComputedQualifier]


def as_qualifier(value: Union[Qualifier, Mapping[str, Any], Callable[[Any], Any], None]) -> Optional[Qualifier]:
    if value is None or isinstance(value, (StaticQualifier, ComputedQualifier)):
        return value
    if isinstance(value, Mapping):
        return StaticQualifier(MappingProxyType(dict(value)))
    if callable(value):
        return ComputedQualifier(value)
    raise DeclarationError(f"Polymorphic qualifier must be a mapping or a callable, got {value!r}")


# -----------------------------------------------------------------------------
# Relation declarations
# -----------------------------------------------------------------------------

@dataclass
class RelationSpec:
    """
    Declaration of a named relation with deferred target resolution.

    The target may be a record class, a zero-argument callable returning one
    (forward references), or the registered name of a record type.

    :class: RelationSpec
    :synopsis: belongs_to / has_many metadata bound to its owning record type
    """

    name: str
    kind: RelationKind
    target: TargetReference
    owner: Optional[Type[Any]] = None
    primary_key: Optional[str] = None
    foreign_key: Optional[str] = None
    included: bool = False
    polymorphic: Optional[Qualifier] = None
    loader: Optional[Callable[[Any], Any]] = None

    _resolved_target: Optional[Type[Any]] = field(default=None, repr=False, compare=False)

    def get_target_type(self) -> str:
        if isinstance(self.target, str):
            return RegistryResolutionConstants.TARGET_TYPE_STRING
        if callable(self.target) and not isinstance(self.target, type):
            return RegistryResolutionConstants.TARGET_TYPE_CALLABLE
        return RegistryResolutionConstants.TARGET_TYPE_CLASS

    @property
    def owner_name(self) -> str:
        return _record_name(self.owner) if self.owner is not None else "?"

    def bind(self, owner: Type[Any]) -> "RelationSpec":
        """Copy of this declaration owned by ``owner``."""
        return dataclasses.replace(self, owner=owner, _resolved_target=self._resolved_target)

    def resolve_target(self) -> Type["ApiRecord"]:
        """Resolve the related record type; raises DeclarationError when it cannot."""
        if self._resolved_target is not None:
            return self._resolved_target

        target_type = self.get_target_type()
        if target_type == RegistryResolutionConstants.TARGET_TYPE_STRING:
            resolved = _api_registry.get_model_by_name(self.target)
            if resolved is None:
                raise DeclarationError(
                    ErrorMessages.RELATION_TARGET_NOT_FOUND.format(
                        target=self.target, relation=self.name, model=self.owner_name
                    )
                )
        elif target_type == RegistryResolutionConstants.TARGET_TYPE_CALLABLE:
            resolved = self.target()
        else:
            resolved = self.target

        if not (isinstance(resolved, type) and getattr(resolved, ModelMetadataConstants.IS_RECORD, False)):
            raise DeclarationError(
                ErrorMessages.RELATION_TARGET_INVALID.format(
                    relation=self.name, model=self.owner_name, target=resolved
                )
            )
        self._resolved_target = resolved
        return resolved

    @property
    def target_name(self) -> str:
        if isinstance(self.target, str):
            return self.target
        return _record_name(self.resolve_target())

    def keys(self) -> Tuple[str, str]:
        """
        ``(primary_key, foreign_key)`` with defaults applied.

        belongs_to: both default to the related type's ``id_ref``; the primary
        key names a field of the related type, the foreign key a field of the
        owner. has_many: both default to the owner's ``id_ref``; the primary key
        names a field of the owner, the foreign key a field of the related type.
        """
        primary_key, foreign_key = self.primary_key, self.foreign_key
        if primary_key and foreign_key:
            return primary_key, foreign_key
        if self.kind is RelationKind.BELONGS_TO:
            default = self.resolve_target().id_ref()
        else:
            default = self.owner.id_ref()
        return primary_key or default, foreign_key or default


class RelationRegistry:
    """Relation name -> :class:`RelationSpec` table owned by one record type."""

    def __init__(self, model_name: str, relations: Optional[Mapping[str, RelationSpec]] = None):
        self.model_name = model_name
        self._relations: Dict[str, RelationSpec] = dict(relations or {})
        self._view: Mapping[str, RelationSpec] = MappingProxyType(self._relations)
        self._frozen = False

    def declare(self, spec: RelationSpec) -> None:
        if self._frozen:
            raise DeclarationError(
                ErrorMessages.REGISTRY_FROZEN.format(registry="Relation registry", model=self.model_name)
            )
        self._relations[spec.name] = spec

    def lookup(self, name: str) -> Optional[RelationSpec]:
        return self._relations.get(name)

    def of_kind(self, kind: RelationKind) -> Dict[str, RelationSpec]:
        return {name: spec for name, spec in self._relations.items() if spec.kind is kind}

    def kinds(self) -> Mapping[str, RelationKind]:
        return MappingProxyType({name: spec.kind for name, spec in self._relations.items()})

    def rebind(self, owner: Type[Any]) -> None:
        for name, spec in list(self._relations.items()):
            self._relations[name] = spec.bind(owner)

    def derive(self, model_name: str) -> "RelationRegistry":
        return RelationRegistry(model_name, self._relations)

    def freeze(self) -> "RelationRegistry":
        self._frozen = True
        return self

    @property
    def relations(self) -> Mapping[str, RelationSpec]:
        return self._view

    def __contains__(self, name: object) -> bool:
        return name in self._relations

    def __iter__(self):
        return iter(self._relations)

    def __len__(self) -> int:
        return len(self._relations)


# -----------------------------------------------------------------------------
# Descriptors
# -----------------------------------------------------------------------------

class FieldDescriptor:
    """Attribute accessor for a declared field; reads and writes go through the record."""

    def __init__(self, rule: Union[CoercionRule, ApiType, str, None] = None):
        self.rule = as_rule(rule)
        self.name: Optional[str] = None

    def __set_name__(self, owner: Type[Any], name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: Type[Any]) -> Any:
        if instance is None:
            return self
        return instance.read_field(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.set_attribute(self.name, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.rule!r})"


class RelationDescriptor(FieldDescriptor):
    """Accessor for a belongs_to / has_many relation."""

    def __init__(self, spec: RelationSpec):
        super().__init__(None)
        self.spec = spec

    def __set_name__(self, owner: Type[Any], name: str) -> None:
        super().__set_name__(owner, name)
        self.spec = dataclasses.replace(self.spec, name=name, owner=owner)


class AliasDescriptor:
    """Alternative name for a declared field."""

    def __init__(self, target: str):
        self.target = target

    def __get__(self, instance: Any, owner: Type[Any]) -> Any:
        if instance is None:
            return self
        return getattr(instance, self.target)

    def __set__(self, instance: Any, value: Any) -> None:
        setattr(instance, self.target, value)


def api_field(
    type_: Union[CoercionRule, ApiType, str, None] = None,
    *,
    enum: Union[List[Any], Tuple[Any, ...], Dict[Any, Any], None] = None,
) -> Any:
    """
    Declare a record field.

    Args:
        type_: Typed-cast target (``ApiType``) or an explicit coercion rule.
            ``None`` keeps raw values.
        enum: Enum values, either a list (keys equal values) or a mapping of
            symbolic key -> canonical value.
    """
    if enum is not None:
        if type_ is not None:
            raise DeclarationError("A field is either typed or an enum, not both")
        return FieldDescriptor(EnumRule.from_values("<field>", enum))
    return FieldDescriptor(type_)


def _relation(
    kind: RelationKind,
    target: TargetReference,
    primary_key: Optional[str],
    foreign_key: Optional[str],
    included: bool,
    polymorphic: Any,
    loader: Optional[Callable[[Any], Any]],
) -> Any:
    if target is None or (isinstance(target, str) and not target.strip()):
        raise DeclarationError(ErrorMessages.RELATION_TARGET_EMPTY.format(relation=kind.value, model="?"))
    spec = RelationSpec(
        name="",
        kind=kind,
        target=target,
        primary_key=primary_key,
        foreign_key=foreign_key,
        included=included,
        polymorphic=as_qualifier(polymorphic),
        loader=loader,
    )
    return RelationDescriptor(spec)


def belongs_to(
    target: TargetReference,
    *,
    primary_key: Optional[str] = None,
    foreign_key: Optional[str] = None,
    included: bool = False,
    polymorphic: Any = None,
    loader: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """
    Declare a single related record.

    :param primary_key: field of the related type matched by the lookup
    :param foreign_key: field of this type holding the related identity
    :param included: hint that the server embeds this relation in record payloads;
        embedded data is materialized whenever present, flag or not
    :param polymorphic: extra lookup terms, a mapping or ``fn(owner) -> mapping``
    :param loader: ``fn(owner) -> value`` replacing the key-based lookup
    """
    return _relation(RelationKind.BELONGS_TO, target, primary_key, foreign_key, included, polymorphic, loader)


def has_many(
    target: TargetReference,
    *,
    primary_key: Optional[str] = None,
    foreign_key: Optional[str] = None,
    included: bool = False,
    polymorphic: Any = None,
    loader: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """
    Declare a collection of related records.

    :param primary_key: field of this type whose value is looked up
    :param foreign_key: field of the related type matched by the lookup
    :param included: hint that the server embeds this relation in record payloads;
        embedded data is materialized whenever present, flag or not
    :param polymorphic: extra lookup terms, a mapping or ``fn(owner) -> mapping``
    :param loader: ``fn(owner) -> value`` replacing the key-based lookup
    """
    return _relation(RelationKind.HAS_MANY, target, primary_key, foreign_key, included, polymorphic, loader)


def api_alias(target: str) -> Any:
    """Declare ``name = api_alias("other")`` to expose a field under a second name."""
    return AliasDescriptor(target)


def validation_hook(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a record method as a pre-save validation hook: ``fn(self, errors)``."""
    setattr(fn, _VALIDATION_HOOK_FLAG, True)
    return fn


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class EnumAction:
    """Entry of the per-type enum dispatch table."""

    field: str
    key: str
    value: Any
    mutates: bool


@dataclass(frozen=True)
class FinderAction:
    """Entry of the per-type finder table (``find_by_<field>``, ``find_all_by_<field>``)."""

    field: str
    many: bool


@dataclass(frozen=True)
class RecordSchema:
    """
    Immutable declaration of one record type.

    :class: RecordSchema
    :synopsis: Fields, relations, identity field and dispatch tables of a record type
    """

    name: str
    path: Optional[str]
    id_ref: Optional[str]
    abstract: bool
    types: TypeRegistry
    relations: RelationRegistry
    enum_actions: Mapping[str, EnumAction]
    finders: Mapping[str, FinderAction]
    validators: Tuple[str, ...]


def _record_name(cls: Type[Any]) -> str:
    return cls.__dict__.get(ModelMetadataConstants.RECORD_NAME) or getattr(cls, "__name__", str(cls))


def _slug(key: str) -> str:
    return re.sub(r"\W+", "_", str(key)).strip("_").lower()


def _parent_schema(cls: Type[Any]) -> Optional[RecordSchema]:
    for base in cls.__mro__[1:]:
        schema = base.__dict__.get(ModelMetadataConstants.SCHEMA)
        if schema is not None:
            return schema
    return None


def _build_enum_actions(types: TypeRegistry) -> Mapping[str, EnumAction]:
    table: Dict[str, EnumAction] = {}
    for field_name, rule in types.enum_rules().items():
        for key, value in rule.values.items():
            slug = _slug(key)
            if not slug:
                continue
            table[f"{ModelMetadataConstants.ENUM_PREDICATE_PREFIX}{slug}"] = EnumAction(field_name, key, value, False)
            table[f"{ModelMetadataConstants.ENUM_MUTATOR_PREFIX}{slug}"] = EnumAction(field_name, key, value, True)
    return MappingProxyType(table)


def _build_finders(types: TypeRegistry, relations: RelationRegistry) -> Mapping[str, FinderAction]:
    table: Dict[str, FinderAction] = {}
    for field_name in types.rules:
        if field_name in relations:
            continue
        table[f"{ModelMetadataConstants.FINDER_PREFIX}{field_name}"] = FinderAction(field_name, False)
        table[f"{ModelMetadataConstants.FINDER_ALL_PREFIX}{field_name}"] = FinderAction(field_name, True)
    return MappingProxyType(table)


def _install_descriptor(cls: Type[Any], name: str, descriptor: FieldDescriptor) -> None:
    setattr(cls, name, descriptor)
    descriptor.__set_name__(cls, name)


def _load_schema(cls: Type[Any], source: Type[Any], types: TypeRegistry, relations: RelationRegistry) -> None:
    """Copy the fields and relations of a declared schema class into ``cls``."""
    source_schema: Optional[RecordSchema] = getattr(source, ModelMetadataConstants.SCHEMA, None)
    if source_schema is None:
        raise DeclarationError(f"{source!r} is not a declared record schema")

    for name, rule in source_schema.types.rules.items():
        spec = source_schema.relations.lookup(name)
        if spec is not None:
            types.declare_field(name)
            relations.declare(spec.bind(cls))
            if not isinstance(getattr(cls, name, None), FieldDescriptor):
                _install_descriptor(cls, name, RelationDescriptor(spec))
            continue
        types.declare_field(name, rule)
        if not isinstance(getattr(cls, name, None), FieldDescriptor):
            _install_descriptor(cls, name, FieldDescriptor(rule))


def api_record(
    name: Optional[str] = None,
    *,
    path: Optional[str] = None,
    id_ref: Optional[str] = None,
    schema: Optional[Type[Any]] = None,
    abstract: bool = False,
) -> Callable[[Type[T]], Type[T]]:
    """
    Decorator completing a record type declaration.

    :param name: record name used in reference descriptors and string targets
    :param path: resource path relative to the API base URL (``None`` for schema-only types)
    :param id_ref: identity field name; inherited when omitted
    :param schema: declared schema class whose fields and relations are loaded
    :param abstract: abstract types are not registered by name
    """

    def decorator(cls: Type[T]) -> Type[T]:
        record_name = name if name is not None else cls.__name__
        parent = _parent_schema(cls)

        # @@ STEP 1: Seed registries from the parent declaration
        if parent is not None:
            types = parent.types.derive(record_name)
            relations = parent.relations.derive(record_name)
            relations.rebind(cls)
            validators: List[str] = list(parent.validators)
        else:
            types = TypeRegistry(record_name)
            relations = RelationRegistry(record_name)
            validators = []

        # @@ STEP 2: Load an external schema declaration
        if schema is not None:
            _load_schema(cls, schema, types, relations)

        # @@ STEP 3: Collect this class's own declarations
        for attr, value in list(cls.__dict__.items()):
            if isinstance(value, RelationDescriptor):
                types.declare_field(attr)
                relations.declare(value.spec.bind(cls))
            elif isinstance(value, FieldDescriptor):
                types.declare_field(attr, value.rule)
            elif callable(value) and getattr(value, _VALIDATION_HOOK_FLAG, False):
                if attr not in validators:
                    validators.append(attr)

        # @@ STEP 4: Freeze and attach
        cls.__api_record_name__ = record_name  # type: ignore[attr-defined]
        cls.__is_api_record__ = True  # type: ignore[attr-defined]
        cls.__api_schema__ = RecordSchema(  # type: ignore[attr-defined]
            name=record_name,
            path=path if path is not None else (parent.path if parent is not None and not parent.abstract else None),
            id_ref=id_ref if id_ref is not None else (parent.id_ref if parent is not None else None),
            abstract=abstract,
            types=types.freeze(),
            relations=relations.freeze(),
            enum_actions=_build_enum_actions(types),
            finders=_build_finders(types, relations),
            validators=tuple(validators),
        )

        if not abstract:
            _api_registry.register(record_name, cls)
        logger.debug("Declared record %s (%d fields, %d relations)", record_name, len(types), len(relations))
        return cls

    return decorator


# -----------------------------------------------------------------------------
# Global registry
# -----------------------------------------------------------------------------

class ApiRegistry:
    """
    Registry of declared record types by name.

    Append-only during start-up; read concurrently afterwards. Only string
    relation targets go through it, each record type owns its own schema.
    """

    _instance: Optional["ApiRegistry"] = None

    def __new__(cls) -> "ApiRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self.__dict__.get("_initialized", False):
            return
        self._initialized = True
        self.models: Dict[str, Type[Any]] = {}

    def register(self, name: str, cls: Type[Any]) -> None:
        if name in self.models and self.models[name] is not cls:
            logger.warning("Record type %s redefined", name)
        self.models[name] = cls

    def get_model_by_name(self, name: str) -> Optional[Type[Any]]:
        return self.models.get(name)

    def clear(self) -> None:
        self.models.clear()


_api_registry = ApiRegistry()


def get_registered_records() -> Dict[str, Type[Any]]:
    return dict(_api_registry.models)


def get_record_by_name(name: str) -> Optional[Type[Any]]:
    return _api_registry.get_model_by_name(name)


def clear_registry() -> None:
    """Forget all registered record types (the types themselves are untouched)."""
    _api_registry.clear()
