"""
Query Plan Builder

Assembles a collection, filter conditions, an optional ordering and an
optional limit into an immutable QueryPlan. The builder never touches the
store, and every method returns a new builder, so a builder shared between
callers cannot leak filters from one invocation into another.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from pydantic import ValidationError

from ..models.entities import FilterCondition, OrderSpec, QueryPlan, SortDirection
from ..batch_ops_exceptions import CollectionNotSelectedError, InvalidQueryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageRequest:
    """
    One page of a paginated read: the base plan limited to the page size,
    plus the document to continue after (None for the first page).
    """
    plan: QueryPlan
    start_after: Optional[Any] = None


class QueryPlanBuilder:
    """
    Immutable builder for QueryPlan values.

    Example:
        ```python
        plan = (
            QueryPlanBuilder()
            .collection("orders")
            .where("status", "==", "pending")
            .order_by("createdAt", "desc")
            .limit(500)
            .build()
        )
        ```
    """

    def __init__(
        self,
        collection: Optional[str] = None,
        conditions: Tuple[FilterCondition, ...] = (),
        order: Optional[OrderSpec] = None,
        limit: Optional[int] = None
    ):
        self._collection = collection
        self._conditions = tuple(conditions)
        self._order = order
        self._limit = limit

    @property
    def collection_path(self) -> Optional[str]:
        return self._collection

    @property
    def conditions(self) -> Tuple[FilterCondition, ...]:
        return self._conditions

    def _replace(self, **changes: Any) -> "QueryPlanBuilder":
        state = {
            "collection": self._collection,
            "conditions": self._conditions,
            "order": self._order,
            "limit": self._limit,
        }
        state.update(changes)
        return QueryPlanBuilder(**state)

    def collection(self, path: str) -> "QueryPlanBuilder":
        """Select a collection; clears conditions, ordering and limit."""
        if not isinstance(path, str) or not path.strip():
            raise InvalidQueryError("Collection path must be a non-empty string")
        return QueryPlanBuilder(collection=path)

    def where(self, field: str, operator: str, value: Any) -> "QueryPlanBuilder":
        """Add a condition; all conditions must hold for a document to match."""
        try:
            condition = FilterCondition(field=field, operator=operator, value=value)
        except ValidationError as e:
            raise InvalidQueryError(f"Invalid condition '{field} {operator} {value!r}': {e}") from e
        return self._replace(conditions=self._conditions + (condition,))

    def order_by(self, field: str, direction: Union[SortDirection, str] = SortDirection.ASCENDING) -> "QueryPlanBuilder":
        """Order by a single field; a later call replaces an earlier one."""
        try:
            order = OrderSpec(field=field, direction=direction)
        except ValidationError as e:
            raise InvalidQueryError(f"Invalid ordering on '{field}': {e}") from e
        return self._replace(order=order)

    def limit(self, limit: int) -> "QueryPlanBuilder":
        """Cap the number of matched documents."""
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidQueryError(f"Limit must be a positive integer, got {limit!r}")
        return self._replace(limit=limit)

    def build(self) -> QueryPlan:
        """
        Produce the QueryPlan.

        Raises:
            CollectionNotSelectedError: If no collection was selected
        """
        if not self._collection:
            raise CollectionNotSelectedError("Collection path is required. Call .collection() first.")
        return QueryPlan(
            collection=self._collection,
            conditions=self._conditions,
            order=self._order,
            limit=self._limit
        )

    @staticmethod
    def page(plan: QueryPlan, page_size: int, cursor: Optional[Any] = None) -> PageRequest:
        """
        Derive a page read from a base plan.

        Filters and ordering are kept as they are; only the limit changes and
        the cursor is carried alongside.
        """
        return PageRequest(plan=plan.with_limit(page_size), start_after=cursor)
