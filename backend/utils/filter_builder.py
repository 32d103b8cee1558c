"""
Filter builder utilities.

Single source of truth for search filter handling across endpoints
(search, CSV/PDF export, anomalies, heatmap).

A SearchFilter becomes an ordered list of Predicate descriptors
(column, operator, value). Rendering a predicate list through a Dialect
yields SQL fragments with positional placeholders plus the flat parameter
list in the same order. User-controlled values only ever travel in the
parameter list; columns and operators come from this module.

Usage:
    from utils.filter_builder import build_predicates, render_predicates, NAMED

    predicates = build_predicates(search_filter)
    where_parts, params = render_predicates(predicates, NAMED)
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from db.sql import ACTIVE_FILTER
from schemas.search_filter import SearchFilter


# =============================================================================
# DIALECTS
# =============================================================================

class Dialect:
    """Placeholder syntax for one driver family. Indexes are 1-based."""

    name = 'base'

    def placeholder(self, index: int) -> str:
        raise NotImplementedError

    def bind(self, params: Sequence[Any]) -> Union[List[Any], Dict[str, Any]]:
        """Shape the flat parameter list for the driver's execute()."""
        return list(params)


class PostgresDialect(Dialect):
    """$1, $2 ... (asyncpg / node-postgres style)."""
    name = 'postgres'

    def placeholder(self, index: int) -> str:
        return f"${index}"


class NamedDialect(Dialect):
    """:p1, :p2 ... for SQLAlchemy text() bind parameters."""
    name = 'named'

    def placeholder(self, index: int) -> str:
        return f":p{index}"

    def bind(self, params: Sequence[Any]) -> Dict[str, Any]:
        return {f"p{i}": value for i, value in enumerate(params, start=1)}


class QmarkDialect(Dialect):
    """? placeholders (sqlite3)."""
    name = 'qmark'

    def placeholder(self, index: int) -> str:
        return "?"


class FormatDialect(Dialect):
    """%s placeholders (psycopg2 / MySQLdb positional)."""
    name = 'format'

    def placeholder(self, index: int) -> str:
        return "%s"


POSTGRES = PostgresDialect()
NAMED = NamedDialect()
QMARK = QmarkDialect()
FORMAT = FormatDialect()

DIALECTS = {d.name: d for d in (POSTGRES, NAMED, QMARK, FORMAT)}


def get_dialect(name: str) -> Dialect:
    try:
        return DIALECTS[name]
    except KeyError:
        raise ValueError(f"Unknown SQL dialect: {name!r}") from None


# =============================================================================
# PREDICATES
# =============================================================================

_NO_VALUE = object()

# operator -> template; {col} is trusted SQL, {ph} a placeholder
OPERATOR_TEMPLATES = {
    '=': "{col} = {ph}",
    '>=': "{col} >= {ph}",
    '<=': "{col} <= {ph}",
    '>': "{col} > {ph}",
    '<': "{col} < {ph}",
    '!=': "{col} <> {ph}",
    'ieq': "UPPER({col}) = UPPER({ph})",
    'icontains': "LOWER({col}) LIKE LOWER({ph}) ESCAPE '\\'",
}

# Raw fragments allowed without a bound value
ACTIVE_PREDICATE_SQL = ACTIVE_FILTER


@dataclass(frozen=True)
class Predicate:
    """
    One WHERE condition.

    column: SQL column expression, always a literal from application code.
    operator: key of OPERATOR_TEMPLATES, 'in', 'not_null' or 'raw'.
    value: bound value (a tuple for 'in'); absent for 'not_null'/'raw'.
    """
    column: str
    operator: str
    value: Any = _NO_VALUE

    @classmethod
    def raw(cls, sql: str) -> 'Predicate':
        """Constant SQL fragment with no bound values."""
        return cls(column=sql, operator='raw')

    @classmethod
    def not_null(cls, column: str) -> 'Predicate':
        return cls(column=column, operator='not_null')

    @property
    def has_value(self) -> bool:
        return self.value is not _NO_VALUE

    def values(self) -> List[Any]:
        if not self.has_value:
            return []
        if self.operator == 'in':
            return list(self.value)
        return [self.value]

    def render(self, dialect: Dialect, start_index: int) -> Tuple[str, List[Any]]:
        """Render to (sql_fragment, bound_values) starting at placeholder start_index."""
        if self.operator == 'raw':
            return self.column, []
        if self.operator == 'not_null':
            return f"{self.column} IS NOT NULL", []
        if self.operator == 'in':
            values = self.values()
            if not values:
                raise ValueError(f"IN predicate on {self.column} has no values")
            if len(values) == 1:
                return f"{self.column} = {dialect.placeholder(start_index)}", values
            placeholders = ", ".join(
                dialect.placeholder(start_index + i) for i in range(len(values))
            )
            return f"{self.column} IN ({placeholders})", values
        template = OPERATOR_TEMPLATES.get(self.operator)
        if template is None:
            raise ValueError(f"Unsupported operator: {self.operator!r}")
        if not self.has_value:
            raise ValueError(f"Operator {self.operator!r} on {self.column} needs a value")
        return template.format(col=self.column, ph=dialect.placeholder(start_index)), [self.value]


def render_predicates(
    predicates: Iterable[Predicate],
    dialect: Dialect,
    start_index: int = 1,
) -> Tuple[List[str], List[Any]]:
    """
    Render predicates in order.

    Returns:
        (where_parts, params) where placeholder N in where_parts refers to
        params[N - start_index].
    """
    where_parts: List[str] = []
    params: List[Any] = []
    index = start_index
    for predicate in predicates:
        fragment, values = predicate.render(dialect, index)
        where_parts.append(fragment)
        params.extend(values)
        index += len(values)
    return where_parts, params


def where_clause(where_parts: Sequence[str]) -> str:
    """Join where_parts with AND; empty input yields an empty string."""
    if not where_parts:
        return ""
    return "WHERE " + " AND ".join(where_parts)


# =============================================================================
# VALUE HELPERS
# =============================================================================

def dollars_to_cents(value: float) -> int:
    return int(round(value * 100))


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


# =============================================================================
# FILTER -> PREDICATES
# =============================================================================

def build_predicates(
    search_filter: SearchFilter,
    *,
    include_inactive: bool = False,
    market_improvement_threshold: float = 10.0,
) -> List[Predicate]:
    """
    Build the ordered predicate list for a SearchFilter.

    Range bounds are emitted only when present. Money bounds arrive in
    dollars and are compared against the stored cent columns.

    Returns:
        List of Predicate, to be combined with AND.
    """
    f = search_filter
    predicates: List[Predicate] = []

    if not include_inactive:
        predicates.append(Predicate.raw(ACTIVE_PREDICATE_SQL))

    # Location
    if f.zip_codes:
        predicates.append(Predicate('zip_code', 'in', tuple(f.zip_codes)))
    if f.city:
        predicates.append(Predicate('city', 'icontains', contains_pattern(f.city)))
    if f.state:
        predicates.append(Predicate('state', 'ieq', f.state.upper()))

    # Price (cents)
    if f.min_price is not None:
        predicates.append(Predicate('list_price', '>=', dollars_to_cents(f.min_price)))
    if f.max_price is not None:
        predicates.append(Predicate('list_price', '<=', dollars_to_cents(f.max_price)))

    # Rent (cents)
    if f.min_rent is not None:
        predicates.append(Predicate('estimated_rent', '>=', dollars_to_cents(f.min_rent)))
    if f.max_rent is not None:
        predicates.append(Predicate('estimated_rent', '<=', dollars_to_cents(f.max_rent)))

    # Ratio (percent)
    if f.min_ratio is not None:
        predicates.append(Predicate('price_to_rent_ratio', '>=', f.min_ratio))
    if f.max_ratio is not None:
        predicates.append(Predicate('price_to_rent_ratio', '<=', f.max_ratio))

    # Structure
    if f.bedrooms is not None:
        predicates.append(Predicate('bedrooms', '=', f.bedrooms))
    if f.bathrooms is not None:
        predicates.append(Predicate('bathrooms', '>=', f.bathrooms))
    if f.property_type:
        predicates.append(Predicate('property_type', '=', f.property_type))
    if f.min_sqft is not None:
        predicates.append(Predicate('square_feet', '>=', f.min_sqft))
    if f.max_sqft is not None:
        predicates.append(Predicate('square_feet', '<=', f.max_sqft))

    # Properties significantly better than their local market. The threshold
    # is configuration, never request input, so it renders as a constant.
    if f.anomalies_only:
        predicates.append(Predicate.raw(
            f"ratio_vs_market_percent >= {float(market_improvement_threshold):g}"
        ))

    return predicates


def anomaly_predicates(
    search_filter: SearchFilter,
    min_improvement: float,
    *,
    market_improvement_threshold: float = 10.0,
) -> List[Predicate]:
    """
    Predicates for the anomalies endpoint.

    Shares the search filter semantics and adds the market-improvement floor.
    """
    predicates = build_predicates(
        search_filter,
        market_improvement_threshold=market_improvement_threshold,
    )
    predicates.append(Predicate.not_null('ratio_vs_market_percent'))
    predicates.append(Predicate('ratio_vs_market_percent', '>=', min_improvement))
    return predicates


def bounds_predicates(bounds: Optional[Tuple[float, float, float, float]]) -> List[Predicate]:
    """
    Geographic bounding box predicates.

    bounds: (lat1, lng1, lat2, lng2) in any corner order.
    """
    if not bounds:
        return []
    lat1, lng1, lat2, lng2 = bounds
    return [
        Predicate('latitude', '>=', min(lat1, lat2)),
        Predicate('latitude', '<=', max(lat1, lat2)),
        Predicate('longitude', '>=', min(lng1, lng2)),
        Predicate('longitude', '<=', max(lng1, lng2)),
    ]
