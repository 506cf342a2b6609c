# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Query class with method chaining for ApiAlchemy.

Only equality filters are supported. They render into the ``filter`` query
parameter as ``fieldName eq 'value'`` terms joined by `` AND ``.
"""

from __future__ import annotations

import copy
import datetime
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Generic, Iterator, List, Mapping, Optional, Type, TypeVar

from pydantic.alias_generators import to_camel

from .api_types import to_timestamp
from .constants import ErrorMessages, HttpStatusConstants, PayloadConstants
from .exceptions import BadRequestError, TransportError, UnauthorizedError

if TYPE_CHECKING:
    from .api_session import ApiSession

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType")


@dataclass
class QueryState:
    """State of a query; every chained call copies it."""

    model_class: Type[Any]
    filters: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    limit_value: Optional[int] = None

    def copy(self, **kwargs: Any) -> "QueryState":
        new_state = copy.copy(self)
        new_state.filters = dict(self.filters)
        new_state.params = dict(self.params)
        for key, value in kwargs.items():
            if not hasattr(new_state, key):
                raise ValueError(f"Cannot update non-existent field '{key}' in QueryState")
            setattr(new_state, key, value)
        return new_state


def render_value(value: Any) -> str:
    """Render one filter operand."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, Enum):
        value = value.value
    elif isinstance(value, (datetime.date, datetime.datetime)):
        value = to_timestamp(value)
    elif isinstance(value, uuid.UUID):
        value = str(value)
    elif hasattr(value, "to_pointer"):
        value = value.id
    text = str(value).replace("'", "''")
    return f"'{text}'"


def render_filter(filters: Mapping[str, Any]) -> str:
    terms = [
        PayloadConstants.FILTER_EQUALITY.format(field=to_camel(name), value=render_value(value))
        for name, value in filters.items()
    ]
    return PayloadConstants.FILTER_JOINER.join(terms)


class Query(Generic[ModelType]):
    """
    Equality-only query against a record type's collection endpoint.

    Queries are immutable: ``where``, ``additional_query_params`` and ``limit``
    return new queries.
    """

    def __init__(self, model_class: Type[ModelType], session: Optional["ApiSession"] = None):
        self._state = QueryState(model_class=model_class)
        self._session = session

    @property
    def model_class(self) -> Type[ModelType]:
        return self._state.model_class

    @property
    def filters(self) -> Dict[str, Any]:
        return dict(self._state.filters)

    def _copy_with_state(self, **kwargs: Any) -> "Query[ModelType]":
        new_query = Query.__new__(Query)
        new_query._state = self._state.copy(**kwargs)
        new_query._session = self._session
        return new_query

    def where(self, filters: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "Query[ModelType]":
        """Add equality conditions, as a mapping and/or keyword arguments."""
        new_filters = dict(self._state.filters)
        new_filters.update(filters or {})
        new_filters.update(kwargs)
        return self._copy_with_state(filters=new_filters)

    def filter_by(self, **kwargs: Any) -> "Query[ModelType]":
        """Alias for where()."""
        return self.where(**kwargs)

    def additional_query_params(self, params: Mapping[str, Any]) -> "Query[ModelType]":
        """Extra query string parameters passed through verbatim."""
        new_params = dict(self._state.params)
        new_params.update(params)
        return self._copy_with_state(params=new_params)

    def limit(self, count: int) -> "Query[ModelType]":
        return self._copy_with_state(limit_value=count)

    @property
    def session(self) -> "ApiSession":
        if self._session is not None:
            return self._session
        return self._state.model_class.session()

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self._state.filters:
            params[PayloadConstants.FILTER_PARAM] = render_filter(self._state.filters)
        page_size = self._state.limit_value
        if page_size is None:
            page_size = self.session.settings.page_size
        params[PayloadConstants.PAGE_SIZE_PARAM] = page_size
        params.update(self._state.params)
        return params

    def _execute(self) -> List[Dict[str, Any]]:
        model_class = self._state.model_class
        response = self.session.resource(model_class).get("", self.to_params())

        status = response.status_code
        if status == HttpStatusConstants.NOT_FOUND:
            return []
        if status == HttpStatusConstants.UNAUTHORIZED:
            raise UnauthorizedError(ErrorMessages.UNAUTHORIZED)
        if status == HttpStatusConstants.BAD_REQUEST:
            raise BadRequestError(response.body)
        if status not in HttpStatusConstants.SUCCESS:
            raise TransportError(ErrorMessages.SINGLE_RECORD_FAILED.format(code=status, body=response.body))

        body = response.body
        if body is None:
            return []
        if isinstance(body, Mapping) and PayloadConstants.RECORDS_KEY in body:
            body = body[PayloadConstants.RECORDS_KEY]
        if isinstance(body, Mapping):
            return [dict(body)]
        if not isinstance(body, list):
            logger.error(ErrorMessages.MALFORMED_RESPONSE.format(model=model_class.__name__, body=body))
            raise TransportError(ErrorMessages.MALFORMED_RESPONSE.format(model=model_class.__name__, body=body))
        return [row for row in body if isinstance(row, Mapping)]

    def all(self) -> List[ModelType]:
        """Execute and map every row through ``from_server``."""
        rows = self._execute()
        if self._state.limit_value is not None:
            rows = rows[: self._state.limit_value]
        model_class = self._state.model_class
        return [model_class.from_server(row) for row in rows]

    def execute(self) -> List[ModelType]:
        return self.all()

    def first(self) -> Optional[ModelType]:
        results = self.limit(1).all()
        return results[0] if results else None

    def __iter__(self) -> Iterator[ModelType]:
        return iter(self.all())

    def __repr__(self) -> str:
        return f"<Query({self._state.model_class.__name__}) filters={self._state.filters!r}>"


__all__ = ["Query", "QueryState", "render_filter", "render_value"]
