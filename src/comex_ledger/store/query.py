"""Query builder for PostgREST relations.

A ``Query`` only records what to do; the executor it was created by (the HTTP
``StoreClient`` or any object with the same ``execute`` coroutine) turns it
into a request.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol


class QueryExecutor(Protocol):
    """Anything that can run a query."""

    async def execute(self, query: "Query") -> Any: ...


class EntityStore(QueryExecutor, Protocol):
    """A query executor that also hands out queries."""

    def table(self, name: str) -> "Query": ...


@dataclass(frozen=True)
class Filter:
    """A single column filter."""

    column: str
    operator: str
    value: Any


def format_value(value: Any) -> str:
    """Render a Python value the way PostgREST expects it in a filter."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


class Query:
    """Chainable description of one operation against a relation."""

    def __init__(self, executor: QueryExecutor, table: str):
        self._executor = executor
        self.table = table
        self.method = "GET"
        self.columns = "*"
        self.filters: list[Filter] = []
        self.ordering: list[tuple[str, bool]] = []
        self.row_limit: int | None = None
        self.payload: dict[str, Any] | list[dict[str, Any]] | None = None
        self.expect_single = False
        self.count_only = False

    # === Operations ===

    def select(self, columns: str = "*") -> "Query":
        self.method = "GET"
        self.columns = " ".join(columns.split())
        return self

    def insert(self, payload: dict[str, Any] | list[dict[str, Any]]) -> "Query":
        self.method = "POST"
        self.payload = payload
        return self

    def update(self, payload: dict[str, Any]) -> "Query":
        self.method = "PATCH"
        self.payload = payload
        return self

    def delete(self) -> "Query":
        self.method = "DELETE"
        return self

    def count(self) -> "Query":
        """Only return the number of matching rows."""
        self.method = "HEAD"
        self.count_only = True
        return self

    # === Filters ===

    def _filter(self, column: str, operator: str, value: Any) -> "Query":
        self.filters.append(Filter(column, operator, value))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "Query":
        return self._filter(column, "neq", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._filter(column, "gte", value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._filter(column, "lte", value)

    def is_(self, column: str, value: bool | None) -> "Query":
        return self._filter(column, "is", value)

    def ilike(self, column: str, pattern: str) -> "Query":
        """Case-insensitive match; ``%`` is the wildcard."""
        return self._filter(column, "ilike", pattern)

    def in_(self, column: str, values: list[Any]) -> "Query":
        return self._filter(column, "in", list(values))

    # === Modifiers ===

    def order(self, column: str, *, ascending: bool = True) -> "Query":
        self.ordering.append((column, ascending))
        return self

    def limit(self, count: int) -> "Query":
        self.row_limit = count
        return self

    def single(self) -> "Query":
        """Expect exactly one row; zero rows raise NotFoundError."""
        self.expect_single = True
        return self

    # === Rendering ===

    def to_params(self) -> list[tuple[str, str]]:
        """Render the query string parameters in PostgREST syntax."""
        params: list[tuple[str, str]] = []
        if self.method in ("GET", "HEAD") or self.payload is not None:
            params.append(("select", self.columns))
        for f in self.filters:
            if f.operator == "in":
                rendered = ",".join(format_value(v) for v in f.value)
                params.append((f.column, f"in.({rendered})"))
            elif f.operator == "ilike":
                # PostgREST accepts * for % to keep the URL clean
                params.append((f.column, f"ilike.{f.value.replace('%', '*')}"))
            else:
                params.append((f.column, f"{f.operator}.{format_value(f.value)}"))
        if self.ordering:
            params.append(
                (
                    "order",
                    ",".join(
                        f"{column}.{'asc' if ascending else 'desc'}"
                        for column, ascending in self.ordering
                    ),
                )
            )
        if self.row_limit is not None:
            params.append(("limit", str(self.row_limit)))
        return params

    async def execute(self) -> Any:
        """Run the query through its executor."""
        return await self._executor.execute(self)

    def __repr__(self) -> str:
        return f"<Query {self.method} {self.table} {self.to_params()!r}>"
