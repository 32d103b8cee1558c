"""
Property Repository - all SQL that reads listings.

Statements are assembled by utils.filter_builder / utils.query_builder and
executed through db.sql.run_sql with SQLAlchemy :name binds. Every listing
read filters on ACTIVE_FILTER. Aggregation beyond COUNT happens in Python
(services.metrics) so the same code runs on PostgreSQL and SQLite.

Usage:
    from services.property_repository import PropertyRepository

    repo = PropertyRepository(db)
    rows, total = repo.fetch_page(queries)
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import text

from db.sql import ACTIVE_FILTER, run_sql, run_sql_one, run_sql_scalar
from utils.filter_builder import NAMED, Predicate
from utils.query_builder import SearchQueries, Statement, build_select

logger = logging.getLogger('roiscout.repository')

PROPERTIES_TABLE = 'properties'
RENTAL_COMPS_TABLE = 'rental_comps'

PROPERTY_COLUMNS = (
    'id',
    'external_id',
    'address',
    'city',
    'state',
    'zip_code',
    'county',
    'latitude',
    'longitude',
    'bedrooms',
    'bathrooms',
    'square_feet',
    'property_type',
    'list_price',
    'estimated_rent',
    'price_to_rent_ratio',
    'cap_rate',
    'ratio_vs_market_percent',
    'data_source',
    'created_at',
    'last_updated',
)

# Columns needed for aggregates (market stats, trends, summaries)
AGGREGATE_COLUMNS = (
    'zip_code',
    'city',
    'state',
    'county',
    'bedrooms',
    'square_feet',
    'property_type',
    'list_price',
    'estimated_rent',
    'price_to_rent_ratio',
)

HEATMAP_COLUMNS = (
    'id',
    'address',
    'zip_code',
    'latitude',
    'longitude',
    'list_price',
    'estimated_rent',
    'price_to_rent_ratio',
)

CLUSTER_COLUMNS = (
    'latitude',
    'longitude',
    'list_price',
    'price_to_rent_ratio',
)

ACTIVITY_COLUMNS = (
    'id',
    'address',
    'city',
    'state',
    'zip_code',
    'list_price',
    'price_to_rent_ratio',
    'created_at',
)

COMP_COLUMNS = (
    'address',
    'bedrooms',
    'bathrooms',
    'square_feet',
    'monthly_rent',
    'data_source',
    'listing_date',
)

PeerKey = Tuple[str, Optional[int]]


def _run(db, statement: Statement) -> List[Dict[str, Any]]:
    return run_sql(db, statement.sql, **statement.bind_params())


class PropertyRepository:
    """Read access to properties and rental comps."""

    def __init__(self, db):
        self.db = db

    # -------------------------------------------------------------------------
    # Search / export / anomalies
    # -------------------------------------------------------------------------

    def fetch_page(self, queries: SearchQueries) -> Tuple[List[Dict[str, Any]], int]:
        """Run the primary and count statements; returns (rows, total)."""
        rows = _run(self.db, queries.primary)
        total = run_sql_scalar(self.db, queries.count.sql, **queries.count.bind_params())
        total = int(total or 0)
        # The count can trail a concurrent insert; never report fewer than returned
        if rows:
            total = max(total, queries.page.offset + len(rows))
        return rows, total

    def fetch_rows(self, statement: Statement) -> List[Dict[str, Any]]:
        return _run(self.db, statement)

    def peer_ratio_rows(self, keys: Iterable[PeerKey]) -> List[Dict[str, Any]]:
        """
        Ratios of active listings sharing any of the (zip_code, bedrooms) keys.

        May return extra cross-combinations (zip A with bedrooms of key B);
        ranking.build_peer_groups() groups by exact key so they are harmless.
        """
        keys = {k for k in keys if k[0] and k[1] is not None}
        if not keys:
            return []
        zips = tuple(sorted({k[0] for k in keys}))
        bedrooms = tuple(sorted({k[1] for k in keys}))
        statement = build_select(
            columns=('zip_code', 'bedrooms', 'price_to_rent_ratio'),
            table=PROPERTIES_TABLE,
            predicates=[
                Predicate.raw(ACTIVE_FILTER),
                Predicate('zip_code', 'in', zips),
                Predicate('bedrooms', 'in', bedrooms),
                Predicate.not_null('price_to_rent_ratio'),
            ],
        )
        return _run(self.db, statement)

    # -------------------------------------------------------------------------
    # Single property
    # -------------------------------------------------------------------------

    def get_property(self, property_id: int) -> Optional[Dict[str, Any]]:
        columns = ",\n    ".join(PROPERTY_COLUMNS)
        return run_sql_one(
            self.db,
            f"""
            SELECT
                {columns}
            FROM {PROPERTIES_TABLE}
            WHERE id = :property_id
              AND {ACTIVE_FILTER}
            """,
            property_id=property_id,
        )

    def comparables(self, subject: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        """Same city/state/type/bedrooms, closest list price first, subject excluded."""
        if subject.get('bedrooms') is None:
            return []
        columns = ",\n    ".join(PROPERTY_COLUMNS)
        return run_sql(
            self.db,
            f"""
            SELECT
                {columns}
            FROM {PROPERTIES_TABLE}
            WHERE city = :city
              AND state = :state
              AND property_type = :property_type
              AND bedrooms = :bedrooms
              AND id <> :property_id
              AND {ACTIVE_FILTER}
            ORDER BY ABS(COALESCE(list_price, 0) - :list_price) ASC, id ASC
            LIMIT :limit
            """,
            city=subject['city'],
            state=subject['state'],
            property_type=subject.get('property_type'),
            bedrooms=subject['bedrooms'],
            property_id=subject['id'],
            list_price=subject.get('list_price') or 0,
            limit=limit,
        )

    def market_position_ratios(self, subject: Dict[str, Any]) -> List[float]:
        """
        Ratios of active listings in the subject's zip with the same bedrooms
        and bathrooms within half a bath, subject excluded.
        """
        if subject.get('bedrooms') is None:
            return []
        bathrooms = subject.get('bathrooms')
        bath_clause = ""
        params: Dict[str, Any] = {}
        if bathrooms is not None:
            bath_clause = "AND bathrooms BETWEEN :bath_low AND :bath_high"
            params['bath_low'] = float(bathrooms) - 0.5
            params['bath_high'] = float(bathrooms) + 0.5
        rows = run_sql(
            self.db,
            f"""
            SELECT price_to_rent_ratio
            FROM {PROPERTIES_TABLE}
            WHERE zip_code = :zip_code
              AND bedrooms = :bedrooms
              {bath_clause}
              AND id <> :property_id
              AND price_to_rent_ratio IS NOT NULL
              AND {ACTIVE_FILTER}
            """,
            zip_code=subject['zip_code'],
            bedrooms=subject['bedrooms'],
            property_id=subject['id'],
            **params,
        )
        return [r['price_to_rent_ratio'] for r in rows]

    def nearby_rental_comps(self, subject: Dict[str, Any], limit: int = 5) -> List[Dict[str, Any]]:
        """Active rental comps in the same zip with the same bedrooms, nearest first."""
        if subject.get('bedrooms') is None:
            return []
        columns = ", ".join(COMP_COLUMNS)
        lat = subject.get('latitude')
        lng = subject.get('longitude')
        params: Dict[str, Any] = {
            'zip_code': subject['zip_code'],
            'bedrooms': subject['bedrooms'],
            'limit': limit,
        }
        if lat is not None and lng is not None:
            # Squared planar distance; ordering only, so no SQRT needed
            order_by = (
                "(latitude - :lat) * (latitude - :lat) "
                "+ (longitude - :lng) * (longitude - :lng) ASC"
            )
            params['lat'] = float(lat)
            params['lng'] = float(lng)
        else:
            order_by = "listing_date DESC"
        return run_sql(
            self.db,
            f"""
            SELECT {columns}
            FROM {RENTAL_COMPS_TABLE}
            WHERE zip_code = :zip_code
              AND bedrooms = :bedrooms
              AND {ACTIVE_FILTER}
            ORDER BY {order_by} NULLS LAST
            LIMIT :limit
            """,
            **params,
        )

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def aggregate_rows(self, predicates: Sequence[Predicate]) -> List[Dict[str, Any]]:
        """Rows for Python-side aggregation; predicates must include the active filter."""
        statement = build_select(
            columns=AGGREGATE_COLUMNS,
            table=PROPERTIES_TABLE,
            predicates=predicates,
            dialect=NAMED,
        )
        return _run(self.db, statement)

    def market_rows(self, state: str, city: str) -> List[Dict[str, Any]]:
        columns = ", ".join(AGGREGATE_COLUMNS)
        return run_sql(
            self.db,
            f"""
            SELECT {columns}
            FROM {PROPERTIES_TABLE}
            WHERE LOWER(city) = LOWER(:city)
              AND UPPER(state) = UPPER(:state)
              AND {ACTIVE_FILTER}
            """,
            city=city,
            state=state,
        )

    def heatmap_rows(self, predicates: Sequence[Predicate], limit: int) -> List[Dict[str, Any]]:
        statement = build_select(
            columns=HEATMAP_COLUMNS,
            table=PROPERTIES_TABLE,
            predicates=list(predicates) + [
                Predicate.not_null('latitude'),
                Predicate.not_null('longitude'),
                Predicate.not_null('price_to_rent_ratio'),
            ],
            order_by="price_to_rent_ratio DESC, id ASC",
            limit=limit,
        )
        return _run(self.db, statement)

    def cluster_rows(self, predicates: Sequence[Predicate]) -> List[Dict[str, Any]]:
        """Located listings with a ratio, for grid clustering."""
        statement = build_select(
            columns=CLUSTER_COLUMNS,
            table=PROPERTIES_TABLE,
            predicates=list(predicates) + [
                Predicate.not_null('latitude'),
                Predicate.not_null('longitude'),
                Predicate.not_null('price_to_rent_ratio'),
            ],
        )
        return _run(self.db, statement)

    def activity_rows(self) -> List[Dict[str, Any]]:
        """Every active listing, newest first, for dashboard statistics."""
        statement = build_select(
            columns=ACTIVITY_COLUMNS,
            table=PROPERTIES_TABLE,
            predicates=[Predicate.raw(ACTIVE_FILTER)],
            order_by="created_at DESC, id DESC",
        )
        return _run(self.db, statement)

    # -------------------------------------------------------------------------
    # Maintenance (CLI)
    # -------------------------------------------------------------------------

    def active_ratio_rows(self) -> List[Dict[str, Any]]:
        return run_sql(
            self.db,
            f"""
            SELECT id, zip_code, bedrooms, price_to_rent_ratio
            FROM {PROPERTIES_TABLE}
            WHERE {ACTIVE_FILTER}
            """,
        )

    def update_market_percent(self, values: Iterable[Tuple[int, Optional[float]]]) -> int:
        """Bulk-write ratio_vs_market_percent. Caller commits."""
        payload = [{'property_id': pid, 'percent': pct} for pid, pct in values]
        if not payload:
            return 0
        session = getattr(self.db, 'session', self.db)
        session.execute(
            text(
                f"UPDATE {PROPERTIES_TABLE} "
                "SET ratio_vs_market_percent = :percent WHERE id = :property_id"
            ),
            payload,
        )
        logger.info("market_percent_updated rows=%s", len(payload))
        return len(payload)
