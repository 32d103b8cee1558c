"""
Query assembly for filtered, sorted, paginated listings.

Combines a base SELECT, a predicate list (utils.filter_builder), an
allow-listed sort and clamped pagination into two statements that share
the same WHERE clause and parameter list:

    primary: SELECT <columns> FROM <table> WHERE ... ORDER BY ... LIMIT ? OFFSET ?
    count:   SELECT COUNT(*) AS total FROM <table> WHERE ...

The count statement's parameters are the primary's minus the trailing
limit/offset pair. No I/O happens here.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from constants import DEFAULT_SORT_COLUMN, DEFAULT_SORT_DIRECTION, MAX_FILTER_INT
from utils.filter_builder import Dialect, NAMED, Predicate, render_predicates, where_clause


@dataclass(frozen=True)
class SortSpec:
    column: str
    direction: str

    def sql(self) -> str:
        # NULLs sort last in both directions so unrated rows never lead
        return f"{self.column} {self.direction} NULLS LAST"


@dataclass(frozen=True)
class Page:
    limit: int
    offset: int


@dataclass(frozen=True)
class Statement:
    sql: str
    params: Tuple[Any, ...]
    dialect: Dialect = NAMED

    def bind_params(self):
        """Parameters shaped for the dialect's driver (dict for NAMED)."""
        return self.dialect.bind(self.params)


@dataclass(frozen=True)
class SearchQueries:
    primary: Statement
    count: Statement
    sort: SortSpec
    page: Page


def resolve_sort(
    sort_by: Optional[str],
    sort_order: Optional[str],
    allowed: Mapping[str, str],
    *,
    default_column: str = DEFAULT_SORT_COLUMN,
    default_direction: str = DEFAULT_SORT_DIRECTION,
) -> SortSpec:
    """
    Validate a requested sort against an allow-list.

    An unknown or missing sort_by falls back to the default column AND
    direction; it is never an error. sort_order 'asc' (any case) is
    ascending, anything else descending.

    Raises:
        ValueError: if the default column itself is not allow-listed
            (a configuration bug, not a request problem)
    """
    if default_column not in allowed:
        raise ValueError(f"Default sort column {default_column!r} is not in the allow-list")

    key = sort_by.strip() if isinstance(sort_by, str) else None
    if not key or key not in allowed:
        return SortSpec(column=allowed[default_column], direction=default_direction)

    direction = 'ASC' if (sort_order or '').strip().lower() == 'asc' else 'DESC'
    return SortSpec(column=allowed[key], direction=direction)


def clamp_page(
    limit: Optional[int],
    offset: Optional[int],
    *,
    default_limit: int,
    max_limit: int,
) -> Page:
    """
    Clamp pagination.

    Missing limit -> default_limit; limit capped at max_limit and floored at 1.
    Missing or negative offset -> 0; offset capped at MAX_FILTER_INT.
    """
    if max_limit < 1:
        raise ValueError("max_limit must be >= 1")
    resolved_limit = default_limit if limit is None else limit
    resolved_limit = max(1, min(resolved_limit, max_limit))
    resolved_offset = 0 if offset is None else max(0, min(offset, MAX_FILTER_INT))
    return Page(limit=resolved_limit, offset=resolved_offset)


def build_search_queries(
    *,
    columns: Sequence[str],
    table: str,
    predicates: Sequence[Predicate],
    sort: SortSpec,
    page: Page,
    dialect: Dialect = NAMED,
) -> SearchQueries:
    """
    Assemble the primary and count statements.

    Args:
        columns: SELECT list entries (trusted SQL)
        table: FROM target (trusted SQL)
        predicates: ordered predicate list
        sort: resolved SortSpec
        page: clamped Page
        dialect: placeholder style

    Returns:
        SearchQueries with identical WHERE clauses and parameter prefixes.
    """
    where_parts, params = render_predicates(predicates, dialect)
    where_sql = where_clause(where_parts)

    limit_index = len(params) + 1
    offset_index = len(params) + 2

    select_list = ",\n    ".join(columns)
    primary_sql = "\n".join(part for part in (
        f"SELECT\n    {select_list}",
        f"FROM {table}",
        where_sql,
        f"ORDER BY {sort.sql()}, id ASC",
        f"LIMIT {dialect.placeholder(limit_index)} OFFSET {dialect.placeholder(offset_index)}",
    ) if part)

    count_sql = "\n".join(part for part in (
        "SELECT COUNT(*) AS total",
        f"FROM {table}",
        where_sql,
    ) if part)

    primary = Statement(
        sql=primary_sql,
        params=tuple(params) + (page.limit, page.offset),
        dialect=dialect,
    )
    count = Statement(sql=count_sql, params=tuple(params), dialect=dialect)
    return SearchQueries(primary=primary, count=count, sort=sort, page=page)


def build_select(
    *,
    columns: Sequence[str],
    table: str,
    predicates: Sequence[Predicate],
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
    dialect: Dialect = NAMED,
) -> Statement:
    """Single SELECT with optional ORDER BY and bound LIMIT."""
    where_parts, params = render_predicates(predicates, dialect)
    params = list(params)
    lines: List[str] = [
        "SELECT\n    " + ",\n    ".join(columns),
        f"FROM {table}",
    ]
    where_sql = where_clause(where_parts)
    if where_sql:
        lines.append(where_sql)
    if order_by:
        lines.append(f"ORDER BY {order_by}")
    if limit is not None:
        params.append(limit)
        lines.append(f"LIMIT {dialect.placeholder(len(params))}")
    return Statement(sql="\n".join(lines), params=tuple(params), dialect=dialect)
