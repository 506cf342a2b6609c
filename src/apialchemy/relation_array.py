# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""Owner-aware collection of related records backing has_many relations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Type

from .api_orm import Qualifier, as_qualifier

if TYPE_CHECKING:
    from .record import ApiRecord


class RelationArray(list):
    """
    Ordered list of related records bound to ``(owner, relation name, related type)``.

    The binding is what lets the persistence layer diff the collection against
    the last resolved state of the owner. The collection is never persisted on
    its own.
    """

    def __init__(
        self,
        owner: "ApiRecord",
        items: Iterable[Any] = (),
        relation: str = "",
        related_type: Optional[Type["ApiRecord"]] = None,
    ):
        super().__init__(items)
        self.owner = owner
        self.relation = relation
        self.related_type = related_type

    @staticmethod
    def polymorphic_attributes(owner: Any, polymorphic: Any) -> Dict[str, Any]:
        """Evaluate a static or computed polymorphic qualifier against ``owner``."""
        qualifier: Optional[Qualifier] = as_qualifier(polymorphic)
        if qualifier is None:
            return {}
        return qualifier.evaluate(owner)

    def build(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "ApiRecord":
        """
        Instantiate an unsaved related record linked to the owner and append it.

        The foreign key and the polymorphic terms of the relation are pre-filled.
        """
        if self.related_type is None:
            raise TypeError(f"RelationArray {self.relation!r} has no related type to build")
        attrs: Dict[str, Any] = {}
        spec = type(self.owner).relation_spec(self.relation)
        if spec is not None and spec.loader is None:
            primary_key, foreign_key = spec.keys()
            attrs[foreign_key] = self.owner.get_attribute(primary_key)
            attrs.update(self.polymorphic_attributes(self.owner, spec.polymorphic))
        attrs.update(attributes or {})
        attrs.update(kwargs)
        record = self.related_type(attrs)
        self.append(record)
        return record

    def copy(self) -> "RelationArray":
        return RelationArray(self.owner, self, self.relation, self.related_type)

    def __repr__(self) -> str:
        return f"RelationArray({self.relation!r}, {list.__repr__(self)})"
