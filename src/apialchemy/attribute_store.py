# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Attribute Store: persisted/pending dual buffer of one record instance.

``persisted`` mirrors the last server-confirmed state, ``pending`` holds local
changes not yet confirmed. A field is dirty iff it is present in ``pending``
with a value different from ``persisted``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional

from .api_types import TypeRegistry
from .constants import RelationKind

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Any]


class AttributeStore:
    """Dual-buffer attribute holder with dirty computation."""

    def __init__(
        self,
        types: TypeRegistry,
        relation_kinds: Mapping[str, RelationKind],
        resolver: Optional[Resolver] = None,
    ):
        self._types = types
        self._relation_kinds = relation_kinds
        self._resolver = resolver
        self.persisted: Dict[str, Any] = {}
        self.pending: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _coerce_all(self, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        return {name: self._types.coerce(name, value) for name, value in attributes.items()}

    def load(self, attributes: Mapping[str, Any]) -> None:
        """Seed ``persisted`` with server-confirmed attributes."""
        self.persisted.update(self._coerce_all(attributes))

    def stage(self, attributes: Mapping[str, Any]) -> None:
        """Apply local attributes through :meth:`set`."""
        for name, value in attributes.items():
            self.set(name, value)

    def reset(self, attributes: Mapping[str, Any]) -> None:
        """Replace both buffers with a fresh server state."""
        self.persisted = self._coerce_all(attributes)
        self.pending = {}

    def clear(self) -> None:
        self.persisted = {}
        self.pending = {}

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def has(self, name: str) -> bool:
        return name in self.pending or name in self.persisted

    def get(self, name: str) -> Any:
        if name in self.pending:
            return self.pending[name]

        kind = self._relation_kinds.get(name)
        if kind is None:
            return self.persisted.get(name)

        value = self.persisted.get(name)
        if value is None:
            if self._resolver is None:
                return None
            # Resolver caches through cache_relation()
            return self._resolver(name)

        if kind is RelationKind.HAS_MANY:
            # Working copy so in-place edits diff against the resolved list
            working = _copy_collection(value)
            self.pending[name] = working
            return working
        return value

    def set(self, name: str, value: Any) -> Any:
        """
        Coerce and stage ``value``.

        Pending is written whenever the coerced value differs from persisted;
        setting a field back to its persisted value drops it from pending.
        Persisted is never touched by a local write.
        """
        value = self._types.coerce(name, value)
        if name in self.persisted and _values_equal(self.persisted[name], value):
            self.pending.pop(name, None)
        else:
            self.pending[name] = value
        return value

    def cache_relation(self, name: str, value: Any) -> Any:
        """Store a resolved relation value; has-many also gets a pending working copy."""
        self.persisted[name] = value
        if self._relation_kinds.get(name) is RelationKind.HAS_MANY and value is not None:
            working = _copy_collection(value)
            self.pending[name] = working
            return working
        return value

    # ------------------------------------------------------------------
    # Dirty tracking
    # ------------------------------------------------------------------

    def dirty_fields(self) -> List[str]:
        dirty = []
        for name, value in self.pending.items():
            if name not in self.persisted or not _values_equal(self.persisted[name], value):
                dirty.append(name)
        return dirty

    def is_dirty(self) -> bool:
        return bool(self.dirty_fields())

    def changes(self) -> Dict[str, Any]:
        return {name: self.pending[name] for name in self.dirty_fields()}

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def merge_from_server(self, attributes: Mapping[str, Any], relation_names: Collection[str] = ()) -> Dict[str, Any]:
        """
        Reconcile a server response.

        Server values win for the fields it returned; pending values are
        re-applied for fields it did not return. Relation fields are dropped
        from both buffers so the next read resolves them again. Pending is
        cleared afterwards.
        """
        server = self._coerce_all(attributes)
        merged = {name: value for name, value in self.persisted.items() if name not in server}
        merged.update(server)
        for name, value in self.pending.items():
            if name not in server:
                merged[name] = value
        for name in relation_names:
            merged.pop(name, None)

        self.persisted = merged
        self.pending = {}
        return self.persisted

    def snapshot(self) -> Dict[str, Any]:
        return {**self.persisted, **self.pending}

    def __repr__(self) -> str:
        return f"AttributeStore(persisted={self.persisted!r}, pending={self.pending!r})"


def _copy_collection(value: Any) -> Any:
    copier = getattr(value, "copy", None)
    if callable(copier):
        return copier()
    return list(value)


def _values_equal(left: Any, right: Any) -> bool:
    if isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            return False
        return all(_values_equal(a, b) for a, b in zip(left, right))
    try:
        return bool(left == right)
    except (TypeError, ValueError):
        logger.debug("Values %r and %r are not comparable", left, right)
        return False
