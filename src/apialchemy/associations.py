# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Association Resolver: at-most-once lazy resolution of relations per instance.

Each ``(instance, relation)`` pair moves ``UNRESOLVED -> RESOLVING -> RESOLVED``
(or ``UNAVAILABLE``) once per instance lifetime. Later reads return the cached
value, so circular relation graphs and empty results never trigger a second
lookup.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Type

from .api_orm import RelationSpec
from .constants import LoggingConstants, PayloadConstants, RelationKind, RelationState
from .relation_array import RelationArray

if TYPE_CHECKING:
    from .record import ApiRecord

logger = logging.getLogger(__name__)


class AssociationResolver:
    """Relation resolution state machine bound to one record instance."""

    def __init__(self, owner: "ApiRecord"):
        self._owner = owner
        self._states: Dict[str, RelationState] = {}

    def state(self, name: str) -> RelationState:
        return self._states.get(name, RelationState.UNRESOLVED)

    def is_attempted(self, name: str) -> bool:
        return self.state(name) is not RelationState.UNRESOLVED

    def mark_resolved(self, name: str) -> None:
        self._states[name] = RelationState.RESOLVED

    def invalidate(self, names: Optional[Iterable[str]] = None) -> None:
        if names is None:
            self._states.clear()
            return
        for name in names:
            self._states.pop(name, None)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, name: str) -> Any:
        """
        Resolve ``name`` once and cache the result into the owner's store.

        Returns the cached value (possibly ``None``) on every later call and
        ``None`` on a re-entrant call made while the relation is resolving.
        """
        owner = self._owner
        with owner._lock:
            state = self.state(name)
            if state is RelationState.RESOLVING:
                return None
            if state is not RelationState.UNRESOLVED:
                return owner._store.persisted.get(name)

            spec = type(owner).relation_spec(name)
            if spec is None:
                return None

            self._states[name] = RelationState.RESOLVING
            try:
                value = self._load(spec)
            except BaseException:
                self._states[name] = RelationState.UNAVAILABLE
                raise

            if value is None:
                self._states[name] = RelationState.UNAVAILABLE
                return None
            self._states[name] = RelationState.RESOLVED
            return owner._store.cache_relation(name, value)

    def _unavailable(self, spec: RelationSpec, reason: str) -> None:
        logger.debug(LoggingConstants.RELATION_UNAVAILABLE, spec.owner_name, spec.name, reason)
        return None

    def _load(self, spec: RelationSpec) -> Any:
        owner = self._owner
        logger.debug(LoggingConstants.RESOLVING_RELATION, spec.owner_name, spec.name, spec.kind.value)

        # @@ STEP 1: A custom loader bypasses the key-based lookup
        if spec.loader is not None:
            return spec.loader(owner)

        # @@ STEP 2: Both keys and a fetchable related type are required
        primary_key, foreign_key = spec.keys()
        if not primary_key or not foreign_key:
            return self._unavailable(spec, "keys not configured")
        related = spec.resolve_target()
        if not related.resource_path():
            return self._unavailable(spec, "related type has no resource path")

        # @@ STEP 3: Key correspondence plus polymorphic terms
        if spec.kind is RelationKind.HAS_MANY:
            key_value = owner.get_attribute(primary_key)
            if key_value is None:
                # Nothing can reference an unsaved owner yet
                return RelationArray(owner, [], spec.name, related)
            filters = {foreign_key: key_value}
        else:
            key_value = owner.get_attribute(foreign_key)
            if key_value is None:
                return self._unavailable(spec, f"{foreign_key} is empty")
            filters = {primary_key: key_value}
        filters.update(RelationArray.polymorphic_attributes(owner, spec.polymorphic))

        # @@ STEP 4: Execute against the related collection
        query = related.where(**filters)
        if spec.kind is RelationKind.HAS_MANY:
            return RelationArray(owner, query.all(), spec.name, related)
        return query.first()

    # ------------------------------------------------------------------
    # Embedded data
    # ------------------------------------------------------------------

    def materialize(self, name: str, raw: Any) -> Any:
        """Turn relation data embedded in a server payload into records."""
        spec = type(self._owner).relation_spec(name)
        if spec is None or raw is None:
            return raw
        related = spec.resolve_target()
        self.mark_resolved(name)
        if spec.kind is RelationKind.HAS_MANY:
            items = raw if isinstance(raw, list) else [raw]
            return RelationArray(self._owner, [_to_record(related, item) for item in items], name, related)
        return _to_record(related, raw)


def _to_record(related: Type["ApiRecord"], item: Any) -> Any:
    if not isinstance(item, Mapping):
        return item
    if item.get(PayloadConstants.TYPE_KEY) == PayloadConstants.POINTER_TYPE:
        id_ref = related.id_ref()
        return related.from_server({id_ref: item.get(id_ref)})
    data = {k: v for k, v in item.items() if k not in (PayloadConstants.TYPE_KEY, PayloadConstants.CLASS_NAME_KEY)}
    return related.from_server(data)


__all__ = ["AssociationResolver"]
