# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Type Registry: per record type mapping from field name to a coercion rule.

A rule is one of:

* :class:`IdentityRule` - the raw value is kept as is,
* :class:`CastRule` - a best-effort typed cast through a pydantic ``TypeAdapter``,
* :class:`EnumRule` - symbolic key <-> canonical value substitution.
"""

from __future__ import annotations

import datetime
import decimal
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Hashable, List, Mapping, Optional, Tuple, Union

from pydantic import ConfigDict, TypeAdapter, ValidationError

from .constants import ApiType, CoercionKind, ErrorMessages, PayloadConstants
from .exceptions import CoercionError, DeclarationError

_PYTHON_TYPES: Dict[ApiType, Any] = {
    ApiType.STRING: str,
    ApiType.INTEGER: int,
    ApiType.FLOAT: float,
    ApiType.DECIMAL: decimal.Decimal,
    ApiType.BOOLEAN: bool,
    ApiType.DATETIME: datetime.datetime,
    ApiType.DATE: datetime.date,
    ApiType.UUID: uuid.UUID,
}

# Module-level cache of adapters: {ApiType: TypeAdapter}
_ADAPTER_CACHE: Dict[ApiType, TypeAdapter] = {}

# Sentinel object to distinguish missing entries from None values
_MISSING = object()


def _get_adapter(api_type: ApiType) -> TypeAdapter:
    adapter = _ADAPTER_CACHE.get(api_type)
    if adapter is None:
        if api_type is ApiType.STRING:
            adapter = TypeAdapter(str, config=ConfigDict(coerce_numbers_to_str=True))
        else:
            adapter = TypeAdapter(_PYTHON_TYPES[api_type])
        _ADAPTER_CACHE[api_type] = adapter
    return adapter


def decode_server_value(value: Any) -> Any:
    """Decode typed wrappers the server may embed (``{"__type": "Date", "iso": ...}``)."""
    if isinstance(value, dict) and value.get(PayloadConstants.TYPE_KEY) == PayloadConstants.DATE_TYPE:
        return _get_adapter(ApiType.DATETIME).validate_python(value[PayloadConstants.DATE_ISO_KEY])
    return value


def to_timestamp(value: Union[datetime.date, datetime.datetime]) -> str:
    """Render a date or datetime as an ISO-8601 UTC timestamp with millisecond precision."""
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time(), tzinfo=datetime.timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    value = value.astimezone(datetime.timezone.utc)
    rendered = value.isoformat(timespec=PayloadConstants.DATETIME_TIMESPEC)
    return rendered.replace(PayloadConstants.UTC_OFFSET, PayloadConstants.UTC_SUFFIX)


# -----------------------------------------------------------------------------
# Coercion rules
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class IdentityRule:
    """Pass-through rule; only server date wrappers are decoded."""

    kind: CoercionKind = field(default=CoercionKind.IDENTITY, init=False)

    def coerce(self, name: str, value: Any) -> Any:
        return decode_server_value(value)


@dataclass(frozen=True)
class CastRule:
    """
    Typed cast rule.

    :class: CastRule
    :synopsis: Best-effort conversion; a failed cast raises CoercionError
    """

    api_type: ApiType
    kind: CoercionKind = field(default=CoercionKind.CAST, init=False)

    def coerce(self, name: str, value: Any) -> Any:
        if value is None:
            return None
        value = decode_server_value(value)
        # Lax mode refuses these two widenings, the wire format relies on them
        if self.api_type is ApiType.DATETIME and type(value) is datetime.date:
            value = datetime.datetime.combine(value, datetime.time(), tzinfo=datetime.timezone.utc)
        elif self.api_type is ApiType.DATE and isinstance(value, datetime.datetime):
            value = value.date()
        try:
            return _get_adapter(self.api_type).validate_python(value)
        except ValidationError as e:
            raise CoercionError(
                ErrorMessages.COERCION_FAILED.format(value=value, name=name, target=self.api_type.value)
            ) from e


@dataclass(frozen=True)
class EnumRule:
    """
    Enum substitution rule.

    Values are stored canonically; readers see the symbolic key. Values that are
    neither a declared key nor a declared canonical value are left untouched so
    that validation, not coercion, reports them.
    """

    values: Mapping[str, Any]
    kind: CoercionKind = field(default=CoercionKind.ENUM, init=False)

    @classmethod
    def from_values(cls, name: str, values: Union[List[Any], Tuple[Any, ...], Dict[Any, Any]]) -> "EnumRule":
        """Standardise a list (identity map) or a dict to a key -> canonical value map."""
        if isinstance(values, (list, tuple)):
            pairs = [(item, item) for item in values]
        elif isinstance(values, dict):
            pairs = list(values.items())
        else:
            raise DeclarationError(ErrorMessages.INVALID_ENUM_VALUES.format(name=name))

        value_map: Dict[str, Any] = {}
        for key, value in pairs:
            key = key.value if isinstance(key, Enum) else key
            value = value.value if isinstance(value, Enum) else value
            value_map[str(key)] = value
        return cls(values=MappingProxyType(value_map))

    def _lookups(self) -> Tuple[Dict[Any, str], Dict[str, str], Dict[str, Any]]:
        reverse = {v: k for k, v in self.values.items()}
        folded_keys = {k.casefold(): k for k in self.values}
        folded_values = {str(v).casefold(): v for v in self.values.values()}
        return reverse, folded_keys, folded_values

    def to_canonical(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, Enum):
            value = value.value
        member = self.values.get(str(value), _MISSING)
        if member is not _MISSING:
            return member
        if not isinstance(value, Hashable):
            return value
        reverse, folded_keys, folded_values = self._lookups()
        if value in reverse:
            return value
        if isinstance(value, str):
            key = folded_keys.get(value.casefold())
            if key is not None:
                return self.values[key]
            canonical = folded_values.get(value.casefold(), _MISSING)
            if canonical is not _MISSING:
                return canonical
        return value

    def to_key(self, value: Any) -> Any:
        if value is None or not isinstance(value, Hashable):
            return value
        reverse, _, folded_values = self._lookups()
        key = reverse.get(value, _MISSING)
        if key is not _MISSING:
            return key
        if isinstance(value, str):
            canonical = folded_values.get(value.casefold(), _MISSING)
            if canonical is not _MISSING:
                return reverse[canonical]
        return value

    def is_member(self, value: Any) -> bool:
        """Case-insensitive membership test against the declared canonical values."""
        if value in self.values.values():
            return True
        return str(value).casefold() in {str(v).casefold() for v in self.values.values()}

    def coerce(self, name: str, value: Any) -> Any:
        return self.to_canonical(value)


CoercionRule = Union[IdentityRule, CastRule, EnumRule]


def as_rule(rule: Union[CoercionRule, ApiType, str, None]) -> CoercionRule:
    """Normalise the shorthand forms accepted by field declarations."""
    if rule is None:
        return IdentityRule()
    if isinstance(rule, (IdentityRule, CastRule, EnumRule)):
        return rule
    return CastRule(ApiType(rule))


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

class TypeRegistry:
    """
    Field name -> coercion rule table owned by one record type.

    Open for declarations until :meth:`freeze` is called by the record decorator,
    read-only afterwards.
    """

    def __init__(self, model_name: str, rules: Optional[Mapping[str, CoercionRule]] = None):
        self.model_name = model_name
        self._rules: Dict[str, CoercionRule] = dict(rules or {})
        self._view: Mapping[str, CoercionRule] = MappingProxyType(self._rules)
        self._frozen = False

    def declare_field(self, name: str, rule: Union[CoercionRule, ApiType, str, None] = None) -> None:
        if self._frozen:
            raise DeclarationError(
                ErrorMessages.REGISTRY_FROZEN.format(registry="Type registry", model=self.model_name)
            )
        self._rules[name] = as_rule(rule)

    def lookup(self, name: str) -> Optional[CoercionRule]:
        return self._rules.get(name)

    def coerce(self, name: str, value: Any) -> Any:
        rule = self._rules.get(name)
        if rule is None:
            return decode_server_value(value)
        return rule.coerce(name, value)

    def enum_rules(self) -> Dict[str, EnumRule]:
        return {name: rule for name, rule in self._rules.items() if isinstance(rule, EnumRule)}

    def freeze(self) -> "TypeRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def rules(self) -> Mapping[str, CoercionRule]:
        return self._view

    def derive(self, model_name: str) -> "TypeRegistry":
        """Open registry for a subclass, seeded with this registry's rules."""
        return TypeRegistry(model_name, self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __iter__(self):
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"TypeRegistry({self.model_name!r}, fields={list(self._rules)})"
