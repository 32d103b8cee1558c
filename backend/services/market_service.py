"""
Market Service - market statistics, summaries, trends, location drill-down,
heatmap points and clusters, per-property reports, dashboard numbers and the
investment calculator.

Rows come from PropertyRepository; every aggregate is computed here with
services.metrics so groups below the minimum sample size degrade to
insufficient-data results instead of misleading numbers.
"""

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from api.errors import NotFoundError
from api.serializers.response import serialize_property, serialize_rows
from config import SearchSettings
from constants import (
    CLUSTER_DEFAULT_GRID_SIZE,
    CLUSTER_DEFAULT_ZOOM,
    CLUSTER_GRID_SIZES,
    HEATMAP_DEFAULT_LIMIT,
    HEATMAP_LIMITS,
    MAX_CLUSTERS,
    PRICE_DISTRIBUTION_BUCKETS,
)
from schemas.search_filter import SearchFilter
from services import metrics, ranking
from services.property_repository import PropertyRepository
from utils.filter_builder import Predicate, bounds_predicates, build_predicates
from utils.normalize import ValidationError, lenient_float, to_number

logger = logging.getLogger('roiscout.market')

MARKET_SUMMARY_LIMIT = 20
PRICING_DATA_LIMIT = 500
RECENT_ACTIVITY_DAYS = 7
RECENT_ACTIVITY_LIMIT = 10
TREND_WINDOW_DAYS = 30

# expense key -> accepted body names
EXPENSE_FIELDS = {
    'property_tax': ('property_tax', 'propertyTax'),
    'insurance': ('insurance',),
    'maintenance': ('maintenance',),
    'vacancy': ('vacancy',),
    'management': ('management',),
}


def _dollars(cents: Any) -> Optional[float]:
    value = to_number(cents)
    return None if value is None else value / 100


def _round(value: Optional[float], places: int = 2) -> Optional[float]:
    return None if value is None else round(value, places)


def _values(rows: Iterable[Dict[str, Any]], key: str, convert: Callable = to_number) -> List[float]:
    return [v for v in (convert(r.get(key)) for r in rows) if v is not None]


def _group(rows: Iterable[Dict[str, Any]], key: str) -> Dict[Any, List[Dict[str, Any]]]:
    groups: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
    for row in rows:
        groups[row.get(key)].append(row)
    return groups


# =============================================================================
# MARKET STATISTICS (city, state)
# =============================================================================

def price_distribution(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Bucket listings by list price (dollars); empty buckets are omitted."""
    buckets: Dict[str, List[Dict[str, Any]]] = {label: [] for _, label in PRICE_DISTRIBUTION_BUCKETS}
    for row in rows:
        price = _dollars(row.get('list_price'))
        if price is None:
            continue
        for upper, label in PRICE_DISTRIBUTION_BUCKETS:
            if upper is None or price < upper:
                buckets[label].append(row)
                break

    distribution = []
    for _, label in PRICE_DISTRIBUTION_BUCKETS:
        members = buckets[label]
        if not members:
            continue
        distribution.append({
            'range': label,
            'count': len(members),
            'averageRatio': _round(metrics.mean(_values(members, 'price_to_rent_ratio'))),
        })
    return distribution


def market_statistics(
    repo: PropertyRepository,
    state: str,
    city: str,
    settings: SearchSettings,
) -> Dict[str, Any]:
    """
    Statistics for one city.

    Raises:
        NotFoundError: no active listings in the market
    """
    rows = repo.market_rows(state, city)
    if not rows:
        raise NotFoundError("Market not found", "No properties found for this market")

    ratios = _values(rows, 'price_to_rent_ratio')
    prices = _values(rows, 'list_price', _dollars)
    rents = _values(rows, 'estimated_rent', _dollars)
    sqft = _values(rows, 'square_feet')
    types = Counter(r['property_type'] for r in rows if r.get('property_type'))

    ratio_stats = metrics.summarize(ratios, min_sample=settings.market_min_sample)
    if ratio_stats['status'] == 'ok':
        ratio_stats = {k: (_round(v) if isinstance(v, float) else v) for k, v in ratio_stats.items()}

    state_code = state.upper()
    return {
        'market': {
            'city': city,
            'state': state_code,
            'displayName': f"{city}, {state_code}",
        },
        'statistics': {
            'totalProperties': len(rows),
            'averagePrice': _round(metrics.mean(prices), 0),
            'averageRent': _round(metrics.mean(rents), 0),
            'averageRatio': _round(metrics.mean(ratios)),
            'minRatio': min(ratios) if ratios else None,
            'maxRatio': max(ratios) if ratios else None,
            'exceptionalDeals': sum(1 for r in ratios if r > settings.exceptional_ratio_threshold),
            'averageSquareFeet': _round(metrics.mean(sqft), 0),
            'mostCommonType': types.most_common(1)[0][0] if types else None,
            'ratioDistribution': ratio_stats,
        },
        'priceDistribution': price_distribution(rows),
    }


# =============================================================================
# SUMMARIES AND TRENDS
# =============================================================================

def market_summary(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
) -> Dict[str, Any]:
    """Per-zip aggregates for the filtered listings, largest markets first."""
    rows = repo.aggregate_rows(build_predicates(
        search_filter,
        market_improvement_threshold=settings.market_improvement_threshold,
    ))

    markets = []
    for zip_code, members in _group(rows, 'zip_code').items():
        ratios = _values(members, 'price_to_rent_ratio')
        prices = _values(members, 'list_price', _dollars)
        markets.append({
            'zip_code': zip_code,
            'total_properties': len(members),
            'avg_price': _round(metrics.mean(prices)),
            'median_price': _round(metrics.median(prices)),
            'avg_rent': _round(metrics.mean(_values(members, 'estimated_rent', _dollars))),
            'avg_ratio': _round(metrics.mean(ratios)),
            'min_ratio': min(ratios) if ratios else None,
            'max_ratio': max(ratios) if ratios else None,
            'high_ratio_count': sum(1 for r in ratios if r > settings.exceptional_ratio_threshold),
        })

    markets.sort(key=lambda m: (-m['total_properties'], m['zip_code'] or ''))
    return {'markets': markets[:MARKET_SUMMARY_LIMIT], 'filters': search_filter.echo()}


def market_trends(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
) -> Dict[str, Any]:
    """
    By-state aggregates (states with at least peer_min_sample listings) and a
    by-property-type breakdown.
    """
    rows = repo.aggregate_rows(build_predicates(
        search_filter,
        market_improvement_threshold=settings.market_improvement_threshold,
    ))

    by_state = []
    for state, members in _group(rows, 'state').items():
        if len(members) < settings.peer_min_sample:
            continue
        ratios = _values(members, 'price_to_rent_ratio')
        by_state.append({
            'state': state,
            'property_count': len(members),
            'avg_price': _round(metrics.mean(_values(members, 'list_price', _dollars))),
            'avg_rent': _round(metrics.mean(_values(members, 'estimated_rent', _dollars))),
            'avg_ratio': _round(metrics.mean(ratios)),
            'median_ratio': _round(metrics.median(ratios)),
        })
    by_state.sort(key=lambda s: (s['avg_ratio'] is None, -(s['avg_ratio'] or 0)))

    by_type = []
    for property_type, members in _group(rows, 'property_type').items():
        if not property_type:
            continue
        by_type.append({
            'property_type': property_type,
            'count': len(members),
            'avg_ratio': _round(metrics.mean(_values(members, 'price_to_rent_ratio'))),
        })
    by_type.sort(key=lambda t: (-t['count'], t['property_type']))

    return {
        'by_state': by_state,
        'by_property_type': by_type,
        'generated_at': datetime.now(timezone.utc).isoformat(),
    }


def pricing_data(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
    county: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Per-zip pricing for one state.

    Location filters (state, zip, county) select listings; price and rent
    bounds then apply to each zip's median values.
    """
    location_only = SearchFilter(
        state=search_filter.state,
        zip_codes=search_filter.zip_codes,
        property_type=search_filter.property_type,
        bedrooms=search_filter.bedrooms,
    )
    predicates = build_predicates(location_only)
    if county:
        predicates.append(Predicate('county', 'ieq', county))
    rows = repo.aggregate_rows(predicates)

    data = []
    for zip_code, members in _group(rows, 'zip_code').items():
        median_price = metrics.median(_values(members, 'list_price', _dollars))
        median_rent = metrics.median(_values(members, 'estimated_rent', _dollars))
        if not median_price or not median_rent:
            continue
        if search_filter.min_price is not None and median_price < search_filter.min_price:
            continue
        if search_filter.max_price is not None and median_price > search_filter.max_price:
            continue
        if search_filter.min_rent is not None and median_rent < search_filter.min_rent:
            continue
        counties = Counter(m['county'] for m in members if m.get('county'))
        data.append({
            'zip_code': zip_code,
            'state': members[0].get('state'),
            'county': counties.most_common(1)[0][0] if counties else None,
            'property_count': len(members),
            'median_price': _round(median_price),
            'median_rent': _round(median_rent),
            'rent_to_price_ratio': metrics.price_to_rent_ratio(median_price, median_rent),
            'gross_rental_yield': metrics.cap_rate(median_price, median_rent),
            'grm': metrics.gross_rent_multiplier(median_price, median_rent),
        })

    data.sort(key=lambda d: -(d['gross_rental_yield'] or 0))
    data = data[:PRICING_DATA_LIMIT]
    filters = search_filter.echo()
    if county:
        filters['county'] = county
    return {
        'data': data,
        'total': len(data),
        'filters': filters,
        'source': 'properties',
    }


def counties_for_state(repo: PropertyRepository, state: str) -> Dict[str, Any]:
    """Counties with active listings in one state, alphabetical."""
    rows = repo.aggregate_rows(
        build_predicates(SearchFilter(state=state)) + [Predicate.not_null('county')]
    )
    counties = [
        {
            'name': county,
            'zip_count': len({m['zip_code'] for m in members}),
            'property_count': len(members),
        }
        for county, members in _group(rows, 'county').items()
    ]
    counties.sort(key=lambda c: c['name'])
    return {'data': counties, 'total': len(counties), 'state': state, 'source': 'properties'}


def zip_codes_for_county(
    repo: PropertyRepository,
    county: str,
    state: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Zip codes with active listings in a county, with median price and rent.

    County names repeat across states; pass state to narrow the match.
    """
    predicates = build_predicates(SearchFilter(state=state))
    predicates.append(Predicate('county', 'ieq', county))
    rows = repo.aggregate_rows(predicates)

    data = []
    for zip_code, members in sorted(_group(rows, 'zip_code').items()):
        data.append({
            'code': zip_code,
            'state': members[0].get('state'),
            'property_count': len(members),
            'median_price': _round(metrics.median(_values(members, 'list_price', _dollars))),
            'median_rent': _round(metrics.median(_values(members, 'estimated_rent', _dollars))),
        })
    result = {'data': data, 'total': len(data), 'county': county, 'source': 'properties'}
    if state:
        result['state'] = state
    return result


# =============================================================================
# HEATMAP
# =============================================================================

def heatmap_limit(zoom_level: Optional[int]) -> int:
    """More points at closer zoom: >12 -> 1000, >8 -> 500, else 200."""
    if zoom_level is None:
        return HEATMAP_DEFAULT_LIMIT
    for min_zoom, limit in HEATMAP_LIMITS:
        if zoom_level > min_zoom:
            return limit
    return HEATMAP_DEFAULT_LIMIT


def heatmap_points(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
    bounds: Optional[Tuple[float, float, float, float]],
    zoom_level: Optional[int],
) -> Dict[str, Any]:
    predicates = build_predicates(
        search_filter,
        market_improvement_threshold=settings.market_improvement_threshold,
    ) + bounds_predicates(bounds)
    limit = heatmap_limit(zoom_level)
    rows = repo.heatmap_rows(predicates, limit)
    points = [
        {
            'id': row['id'],
            'lat': to_number(row['latitude']),
            'lng': to_number(row['longitude']),
            'ratio': to_number(row['price_to_rent_ratio']),
            'price': _dollars(row.get('list_price')),
            'rent': _dollars(row.get('estimated_rent')),
            'address': row.get('address'),
            'zip_code': row.get('zip_code'),
        }
        for row in rows
    ]
    return {
        'points': points,
        'bounds_used': list(bounds) if bounds else None,
        'zoom_level': zoom_level,
        'total_points': len(points),
        'limit': limit,
    }


def cluster_grid_size(zoom_level: Optional[int]) -> float:
    """Finer cells at closer zoom: >10 -> 0.001, >6 -> 0.01, else 0.1 degrees."""
    zoom = CLUSTER_DEFAULT_ZOOM if zoom_level is None else zoom_level
    for min_zoom, size in CLUSTER_GRID_SIZES:
        if zoom > min_zoom:
            return size
    return CLUSTER_DEFAULT_GRID_SIZE


def snap_to_grid(value: float, grid_size: float) -> float:
    """Nearest grid line, halves rounded away from zero."""
    cells = math.floor(abs(value) / grid_size + 0.5)
    if value < 0:
        cells = -cells
    return round(cells * grid_size, 6)


def map_clusters(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
    zoom_level: Optional[int],
    bounds: Optional[Tuple[float, float, float, float]] = None,
) -> Dict[str, Any]:
    """
    Listings grouped into lat/lng grid cells sized by zoom level.

    Largest clusters first, at most MAX_CLUSTERS.
    """
    zoom = CLUSTER_DEFAULT_ZOOM if zoom_level is None else zoom_level
    grid_size = cluster_grid_size(zoom)
    predicates = build_predicates(
        search_filter,
        market_improvement_threshold=settings.market_improvement_threshold,
    ) + bounds_predicates(bounds)

    cells: Dict[Tuple[float, float], List[Dict[str, Any]]] = defaultdict(list)
    for row in repo.cluster_rows(predicates):
        lat = to_number(row['latitude'])
        lng = to_number(row['longitude'])
        cells[(snap_to_grid(lat, grid_size), snap_to_grid(lng, grid_size))].append(row)

    clusters = [
        {
            'lat': lat,
            'lng': lng,
            'count': len(members),
            'avg_ratio': _round(metrics.mean(_values(members, 'price_to_rent_ratio'))),
            'avg_price': _round(metrics.mean(_values(members, 'list_price', _dollars))),
        }
        for (lat, lng), members in cells.items()
    ]
    clusters.sort(key=lambda c: (-c['count'], c['lat'], c['lng']))
    return {
        'clusters': clusters[:MAX_CLUSTERS],
        'total_clusters': len(clusters),
        'zoom_level': zoom,
        'grid_size': grid_size,
    }


# =============================================================================
# SINGLE PROPERTY
# =============================================================================

def _load_enriched_property(
    repo: PropertyRepository,
    property_id: int,
    settings: SearchSettings,
) -> Dict[str, Any]:
    subject = repo.get_property(property_id)
    if subject is None:
        raise NotFoundError(
            "Property not found",
            "The requested property does not exist or is no longer available",
        )
    peer_groups = ranking.build_peer_groups(repo.peer_ratio_rows([ranking.peer_key(subject)]))
    return ranking.enrich_rows([subject], settings, peer_groups, with_score=True)[0]


def property_detail(
    repo: PropertyRepository,
    property_id: int,
    settings: SearchSettings,
) -> Dict[str, Any]:
    """
    Returns:
        {"property", "comparables", "nearbyComps", "marketPosition"}

    Raises:
        NotFoundError: unknown or inactive id
    """
    subject = _load_enriched_property(repo, property_id, settings)
    comparables = ranking.enrich_rows(
        repo.comparables(subject, settings.comparables_limit), settings
    )
    comps = repo.nearby_rental_comps(subject)
    position = ranking.analyze_market_position(
        to_number(subject.get('price_to_rent_ratio')),
        repo.market_position_ratios(subject),
        settings,
    )
    return {
        'property': serialize_property(subject),
        'comparables': serialize_rows(comparables),
        'nearbyComps': serialize_rows(comps),
        'marketPosition': position,
    }


def property_report(
    repo: PropertyRepository,
    property_id: int,
    settings: SearchSettings,
) -> Dict[str, Any]:
    """Score, market position and investment metrics for one listing."""
    subject = _load_enriched_property(repo, property_id, settings)
    position = ranking.analyze_market_position(
        to_number(subject.get('price_to_rent_ratio')),
        repo.market_position_ratios(subject),
        settings,
    )
    return {
        'property': serialize_property(subject),
        'score': subject['score'],
        'marketPosition': position,
        'investmentMetrics': metrics.investment_metrics(
            _dollars(subject.get('list_price')),
            _dollars(subject.get('estimated_rent')),
        ),
        'generated_at': datetime.now(timezone.utc).isoformat(),
    }


# =============================================================================
# DASHBOARD
# =============================================================================

def _as_datetime(value: Any) -> Optional[datetime]:
    # Raw SQL on SQLite hands back timestamps as ISO strings
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def time_ago(created: datetime, now: datetime) -> str:
    hours = int((now - created).total_seconds() // 3600)
    days = hours // 24
    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    return "Just now"


def format_trend(percent: float) -> str:
    return f"{'+' if percent >= 0 else ''}{percent:.1f}%"


def dashboard_stats(
    repo: PropertyRepository,
    settings: SearchSettings,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Headline numbers for the dashboard.

    marketTrend compares the average ratio of listings created in the last
    TREND_WINDOW_DAYS with the older ones; recentActivity lists up to
    RECENT_ACTIVITY_LIMIT listings created in the last RECENT_ACTIVITY_DAYS.
    """
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    trend_cutoff = now - timedelta(days=TREND_WINDOW_DAYS)
    activity_cutoff = now - timedelta(days=RECENT_ACTIVITY_DAYS)
    threshold = settings.exceptional_ratio_threshold

    rows = repo.activity_rows()
    ratios: List[float] = []
    recent_ratios: List[float] = []
    older_ratios: List[float] = []
    activity: List[Dict[str, Any]] = []

    for row in rows:
        ratio = to_number(row.get('price_to_rent_ratio'))
        created = _as_datetime(row.get('created_at'))
        if ratio is not None and ratio > 0:
            ratios.append(ratio)
            if created is not None:
                (recent_ratios if created > trend_cutoff else older_ratios).append(ratio)
        if created is None or created <= activity_cutoff or len(activity) >= RECENT_ACTIVITY_LIMIT:
            continue
        is_deal = ratio is not None and ratio > threshold
        location = f"{row.get('city')}, {row.get('state')}"
        activity.append({
            'id': row['id'],
            'type': 'new_deal' if is_deal else 'new_property',
            'message': (
                f"New exceptional deal found in {location}" if is_deal
                else f"New property added in {location}"
            ),
            'time': time_ago(created, now),
            'ratio': ratio,
        })

    recent_avg = metrics.mean(recent_ratios) or 0.0
    older_avg = metrics.mean(older_ratios) or 0.0
    trend = round((recent_avg - older_avg) / older_avg * 100, 1) if older_avg > 0 else 0.0

    return {
        'totalProperties': len(rows),
        'avgRatio': _round(metrics.mean(ratios), 1),
        'exceptionalDeals': sum(1 for r in ratios if r > threshold),
        'marketTrend': format_trend(trend),
        'recentActivity': activity,
        'generated_at': now.isoformat(),
    }


# =============================================================================
# INVESTMENT CALCULATOR
# =============================================================================

def _first(payload: Mapping[str, Any], names: Tuple[str, ...]) -> Any:
    for name in names:
        if payload.get(name) is not None:
            return payload[name]
    return None


def investment_analysis(payload: Any) -> Dict[str, Any]:
    """
    Investment metrics for a caller-supplied price, rent and expenses.

    Body: {"list_price", "monthly_rent", "expenses": {...}} in dollars;
    camelCase names are accepted too. Unparseable expense values are
    dropped so their defaults apply.

    Raises:
        ValidationError: list_price or monthly_rent missing or not positive
    """
    if not isinstance(payload, Mapping):
        payload = {}
    list_price = lenient_float(_first(payload, ('list_price', 'listPrice')))
    monthly_rent = lenient_float(_first(payload, ('monthly_rent', 'monthlyRent')))
    for field, value in (('list_price', list_price), ('monthly_rent', monthly_rent)):
        if value is None or value <= 0:
            raise ValidationError("list_price and monthly_rent are required", field=field)

    raw_expenses = payload.get('expenses')
    if not isinstance(raw_expenses, Mapping):
        raw_expenses = {}
    expenses: Dict[str, float] = {}
    for key, names in EXPENSE_FIELDS.items():
        value = lenient_float(_first(raw_expenses, names))
        if value is not None:
            expenses[key] = value

    return {
        'input': {'list_price': list_price, 'monthly_rent': monthly_rent, 'expenses': expenses},
        'metrics': metrics.investment_metrics(list_price, monthly_rent, expenses),
    }


# =============================================================================
# MAINTENANCE
# =============================================================================

def recompute_market_percent(repo: PropertyRepository, settings: SearchSettings) -> Dict[str, int]:
    """
    Refresh ratio_vs_market_percent for every active listing from its
    (zip_code, bedrooms) peer group. Caller commits.
    """
    rows = repo.active_ratio_rows()
    peer_groups = ranking.build_peer_groups(rows)
    updates = []
    for row in rows:
        peers = peer_groups.get(ranking.peer_key(row), [])
        updates.append((
            row['id'],
            ranking.ratio_vs_market_percent(
                to_number(row.get('price_to_rent_ratio')), peers, settings.peer_min_sample
            ),
        ))
    updated = repo.update_market_percent(updates)
    flagged = sum(1 for _, pct in updates if pct is not None)
    logger.info("recompute_market_percent rows=%s with_peers=%s", updated, flagged)
    return {'rows': updated, 'with_market_data': flagged}
