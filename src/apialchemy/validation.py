# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Validation hook contract.

Hooks are record methods marked with :func:`~apialchemy.api_orm.validation_hook`;
each receives the record's :class:`ErrorCollection` and appends
``(field, message)`` pairs. A non-empty collection blocks ``save``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterator, List

from pydantic.alias_generators import to_snake

from .constants import ErrorMessages

if TYPE_CHECKING:
    from .record import ApiRecord


def normalize_error_key(key: Any) -> str:
    """Server field names (``EmailAddress``) and attribute names share one key space."""
    return to_snake(str(key))


class ErrorCollection:
    """Per-field validation messages of one record."""

    def __init__(self) -> None:
        self._messages: Dict[str, List[str]] = {}

    def add(self, field: Any, message: str) -> None:
        self._messages.setdefault(normalize_error_key(field), []).append(message)

    def get(self, field: Any) -> List[str]:
        return list(self._messages.get(normalize_error_key(field), []))

    def __getitem__(self, field: Any) -> List[str]:
        return self.get(field)

    def __contains__(self, field: object) -> bool:
        return normalize_error_key(field) in self._messages

    def __iter__(self) -> Iterator[str]:
        return iter(self._messages)

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def __bool__(self) -> bool:
        return bool(self._messages)

    def items(self):
        return self._messages.items()

    def clear(self) -> None:
        self._messages.clear()

    def is_empty(self) -> bool:
        return not self._messages

    def full_messages(self) -> List[str]:
        return [f"{field} {message}" for field, messages in self._messages.items() for message in messages]

    def to_dict(self) -> Dict[str, List[str]]:
        return {field: list(messages) for field, messages in self._messages.items()}

    def __repr__(self) -> str:
        return f"ErrorCollection({self._messages!r})"


def validate_enum(record: "ApiRecord", errors: ErrorCollection) -> None:
    """Built-in hook: enum fields must hold one of their declared values."""
    for field, rule in type(record).type_registry().enum_rules().items():
        value = record.get_attribute(field)
        if value is None:
            continue
        if not rule.is_member(value):
            errors.add(field, ErrorMessages.INVALID_ENUM_VALUE)


def run_validation(record: "ApiRecord") -> bool:
    """Clear ``record.errors``, run the built-in and declared hooks, report validity."""
    errors = record.errors
    errors.clear()
    validate_enum(record, errors)
    for hook_name in type(record).schema().validators:
        getattr(record, hook_name)(errors)
    return errors.is_empty()
