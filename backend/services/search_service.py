"""
Search Service - one pipeline for every filtered listing endpoint.

    SearchFilter -> predicates -> primary + count statements -> repository
                 -> peer-group enrichment -> serialized response

Search, CSV/PDF export and anomaly detection all run through here so they
share identical filter semantics.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from config import SearchSettings
from constants import ANOMALY_SORT_COLUMNS, SEARCH_SORT_COLUMNS
from schemas.search_filter import SearchFilter
from services import ranking
from services.property_repository import PROPERTIES_TABLE, PROPERTY_COLUMNS, PropertyRepository
from api.serializers.response import pagination_envelope, search_response, serialize_rows
from utils.filter_builder import anomaly_predicates, build_predicates
from utils.query_builder import build_search_queries, clamp_page, resolve_sort

logger = logging.getLogger('roiscout.search')


def _enrich(
    repo: PropertyRepository,
    rows: List[Dict[str, Any]],
    settings: SearchSettings,
    *,
    with_score: bool = False,
) -> List[Dict[str, Any]]:
    if not rows:
        return []
    peer_rows = repo.peer_ratio_rows(ranking.peer_key(row) for row in rows)
    peer_groups = ranking.build_peer_groups(peer_rows)
    return ranking.enrich_rows(rows, settings, peer_groups, with_score=with_score)


def search_properties(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
) -> Dict[str, Any]:
    """
    Filtered, sorted, paginated search.

    Returns:
        {"properties": [...], "pagination": {...}, "filters": {...}}
    """
    start = time.perf_counter()
    predicates = build_predicates(
        search_filter,
        market_improvement_threshold=settings.market_improvement_threshold,
    )
    sort = resolve_sort(search_filter.sort_by, search_filter.sort_order, SEARCH_SORT_COLUMNS)
    page = clamp_page(
        search_filter.limit,
        search_filter.offset,
        default_limit=settings.search_default_limit,
        max_limit=settings.search_max_limit,
    )
    queries = build_search_queries(
        columns=PROPERTY_COLUMNS,
        table=PROPERTIES_TABLE,
        predicates=predicates,
        sort=sort,
        page=page,
    )

    rows, total = repo.fetch_page(queries)
    enriched = _enrich(repo, rows, settings)

    logger.info(
        "search predicates=%s returned=%s total=%s sort=%s elapsed_ms=%.1f",
        len(predicates), len(rows), total, sort.sql(), (time.perf_counter() - start) * 1000,
    )
    return search_response(
        enriched,
        pagination_envelope(total, page.limit, page.offset),
        search_filter.echo(),
    )


def export_rows(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
) -> List[Dict[str, Any]]:
    """
    Rows for CSV/PDF export: the search pipeline with export limits and no count.

    Returns serialized rows (dollars, ISO dates).
    """
    predicates = build_predicates(
        search_filter,
        market_improvement_threshold=settings.market_improvement_threshold,
    )
    sort = resolve_sort(search_filter.sort_by, search_filter.sort_order, SEARCH_SORT_COLUMNS)
    page = clamp_page(
        search_filter.limit,
        search_filter.offset,
        default_limit=settings.export_default_limit,
        max_limit=settings.export_max_limit,
    )
    queries = build_search_queries(
        columns=PROPERTY_COLUMNS,
        table=PROPERTIES_TABLE,
        predicates=predicates,
        sort=sort,
        page=page,
    )
    rows = repo.fetch_rows(queries.primary)
    logger.info("export rows=%s limit=%s", len(rows), page.limit)
    return serialize_rows(_enrich(repo, rows, settings))


def find_anomalies(
    repo: PropertyRepository,
    search_filter: SearchFilter,
    settings: SearchSettings,
    min_improvement: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Listings at least min_improvement percent better than their peer median.

    Returns:
        {"anomalies": [...], "criteria": {...}, "summary": {...}}
    """
    if min_improvement is None:
        min_improvement = settings.anomaly_min_improvement

    predicates = anomaly_predicates(
        search_filter,
        min_improvement,
        market_improvement_threshold=settings.market_improvement_threshold,
    )
    sort = resolve_sort(
        search_filter.sort_by,
        search_filter.sort_order,
        ANOMALY_SORT_COLUMNS,
        default_column='ratio_vs_market_percent',
    )
    page = clamp_page(
        search_filter.limit,
        search_filter.offset,
        default_limit=settings.anomalies_default_limit,
        max_limit=settings.anomalies_max_limit,
    )
    queries = build_search_queries(
        columns=PROPERTY_COLUMNS,
        table=PROPERTIES_TABLE,
        predicates=predicates,
        sort=sort,
        page=page,
    )
    rows, total = repo.fetch_page(queries)
    # Stored market percent is what qualified the row; keep it rather than
    # recomputing against a possibly smaller live peer group
    enriched = ranking.enrich_rows(rows, settings, with_score=True)
    anomalies = serialize_rows(enriched)

    improvements = [a['ratio_vs_market_percent'] for a in anomalies
                     if a.get('ratio_vs_market_percent') is not None]
    summary = {
        'count': len(anomalies),
        'total': total,
        'avg_improvement_percent': round(sum(improvements) / len(improvements), 2) if improvements else None,
        'max_improvement_percent': max(improvements) if improvements else None,
    }
    logger.info("anomalies min_improvement=%s returned=%s total=%s", min_improvement, len(rows), total)
    return {
        'anomalies': anomalies,
        'criteria': {
            'min_improvement_percent': min_improvement,
            'total_found': total,
            'limit': page.limit,
            'filters': search_filter.echo(),
        },
        'summary': summary,
    }
