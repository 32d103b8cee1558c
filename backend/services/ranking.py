"""
Result ranking and anomaly flagging.

Post-query enrichment for property rows:
- derive ratio / cap rate / GRM when a row lacks precomputed values
- market-relative ratio against the (zip_code, bedrooms) peer group
- "exceptional deal" flag
- deal-quality band against peer quartiles
- composite 0-100 score with grade and recommendation

Thresholds, weights and tier cutoffs come from config.SearchSettings.
All functions are pure.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from config import SearchSettings
from constants import (
    DEFAULT_RECOMMENDATION,
    DealQuality,
    INSUFFICIENT_DATA,
    LOWEST_GRADE,
    RECOMMENDATIONS,
    SCORE_GRADES,
)
from services import metrics
from utils.normalize import to_number

PeerKey = Tuple[str, Optional[int]]

# Share of each factor's weight awarded per tier, best tier first; the last
# entry is the floor for values below every cutoff.
RATIO_TIER_POINTS = (1.0, 0.75, 0.5, 0.125)
MARKET_TIER_POINTS = (1.0, 5 / 6, 0.5, 1 / 3, 1 / 15)
CAP_RATE_TIER_POINTS = (1.0, 0.75, 0.5, 0.15)
SPACE_TIER_POINTS = (1.0, 0.5, 0.1)

RATIO_TIER_LABELS = (
    'Excellent rent ratio (>={0}%)',
    'Good rent ratio (>={0}%)',
    'Fair rent ratio (>={0}%)',
    'Low rent ratio (<{0}%)',
)
MARKET_TIER_LABELS = (
    'Significantly above market (>={0}%)',
    'Well above market (>={0}%)',
    'Above market (>={0}%)',
    'At market level',
    'Below market',
)
CAP_RATE_TIER_LABELS = (
    'Excellent cap rate (>={0}%)',
    'Good cap rate (>={0}%)',
    'Fair cap rate (>={0}%)',
    'Low cap rate (<{0}%)',
)
SPACE_TIER_LABELS = (
    'Good space per bedroom',
    'Adequate space per bedroom',
    'Limited space per bedroom',
)


# =============================================================================
# MARKET POSITION
# =============================================================================

def ratio_vs_market_percent(
    subject_ratio: Optional[float],
    peer_ratios: Iterable[float],
    min_peers: int = 5,
) -> Optional[float]:
    """
    Percent by which subject_ratio beats the peer median.

    ((subject / peer_median) - 1) * 100, rounded to 2 places. None when the
    subject has no ratio, fewer than min_peers peers exist, or the median
    is not positive.

    Example:
        >>> ratio_vs_market_percent(0.9, [0.5, 0.6, 0.7, 0.8, 0.9])
        28.57
    """
    if subject_ratio is None:
        return None
    peers = [r for r in peer_ratios if r is not None]
    if len(peers) < min_peers:
        return None
    peer_median = metrics.median(peers)
    if peer_median is None or peer_median <= 0:
        return None
    return round(((subject_ratio / peer_median) - 1) * 100, 2)


def is_exceptional_deal(
    ratio: Optional[float],
    market_percent: Optional[float],
    settings: SearchSettings,
) -> bool:
    """
    Absolute rule: ratio > exceptional_ratio_threshold.
    Relative rule: market_percent >= market_improvement_threshold.

    Either rule flags the row. Both are monotonic in ratio.
    """
    if ratio is not None and ratio > settings.exceptional_ratio_threshold:
        return True
    if market_percent is not None and market_percent >= settings.market_improvement_threshold:
        return True
    return False


def deal_quality(ratio: Optional[float], stats: Optional[Mapping[str, Any]]) -> str:
    """Band the subject ratio against peer p25/median/p75."""
    if ratio is None or not stats or stats.get('status') != 'ok':
        return DealQuality.UNKNOWN
    if ratio >= stats['p75']:
        return DealQuality.EXCELLENT
    if ratio >= stats['median']:
        return DealQuality.GOOD
    if ratio >= stats['p25']:
        return DealQuality.FAIR
    return DealQuality.POOR


# =============================================================================
# COMPOSITE SCORE
# =============================================================================

def _tier_points(
    value: float,
    cutoffs: Tuple[float, ...],
    weight: int,
    fractions: Tuple[float, ...],
    labels: Tuple[str, ...],
) -> Tuple[int, str]:
    for i, cutoff in enumerate(cutoffs):
        if value >= cutoff:
            return round(weight * fractions[i]), labels[i].format(_fmt(cutoff))
    lowest = cutoffs[-1] if cutoffs else 0
    return round(weight * fractions[-1]), labels[-1].format(_fmt(lowest))


def _fmt(number: float) -> str:
    return f"{number:g}"


def grade_for(score: int) -> str:
    for minimum, grade in SCORE_GRADES:
        if score >= minimum:
            return grade
    return LOWEST_GRADE


def recommendation_for(score: int) -> Dict[str, str]:
    for minimum, recommendation in RECOMMENDATIONS:
        if score >= minimum:
            return dict(recommendation)
    return dict(DEFAULT_RECOMMENDATION)


def score_property(row: Mapping[str, Any], settings: SearchSettings) -> Dict[str, Any]:
    """
    Weighted 0-100 score.

    Factors (default weights): ratio tier 40, market position 30,
    cap rate 20, space per bedroom 10. A factor without data contributes
    nothing.

    Returns:
        {"total_score", "grade", "factors": [{"factor", "points"}], "recommendation"}
    """
    score = 0
    factors: List[Dict[str, Any]] = []

    def add(points: int, label: str) -> None:
        nonlocal score
        score += points
        factors.append({'factor': label, 'points': points})

    ratio = to_number(row.get('price_to_rent_ratio'))
    if ratio is not None:
        add(*_tier_points(ratio, settings.ratio_tiers, settings.score_weight_ratio,
                          RATIO_TIER_POINTS, RATIO_TIER_LABELS))

    market_percent = to_number(row.get('ratio_vs_market_percent'))
    if market_percent is not None:
        add(*_tier_points(market_percent, settings.market_tiers, settings.score_weight_market,
                          MARKET_TIER_POINTS, MARKET_TIER_LABELS))

    cap = to_number(row.get('cap_rate'))
    if cap is not None:
        add(*_tier_points(cap, settings.cap_rate_tiers, settings.score_weight_cap_rate,
                          CAP_RATE_TIER_POINTS, CAP_RATE_TIER_LABELS))

    sqft = to_number(row.get('square_feet'))
    bedrooms = to_number(row.get('bedrooms'))
    if sqft and bedrooms:
        add(*_tier_points(sqft / bedrooms, settings.space_tiers, settings.score_weight_space,
                          SPACE_TIER_POINTS, SPACE_TIER_LABELS))

    score = max(0, min(100, score))
    return {
        'total_score': score,
        'grade': grade_for(score),
        'factors': factors,
        'recommendation': recommendation_for(score),
    }


# =============================================================================
# ROW ENRICHMENT
# =============================================================================

def peer_key(row: Mapping[str, Any]) -> PeerKey:
    bedrooms = row.get('bedrooms')
    return (str(row.get('zip_code') or ''), int(bedrooms) if bedrooms is not None else None)


def build_peer_groups(peer_rows: Iterable[Mapping[str, Any]]) -> Dict[PeerKey, List[float]]:
    """Group (zip_code, bedrooms, price_to_rent_ratio) rows into sorted ratio lists."""
    groups: Dict[PeerKey, List[float]] = {}
    for row in peer_rows:
        ratio = to_number(row.get('price_to_rent_ratio'))
        if ratio is None:
            continue
        groups.setdefault(peer_key(row), []).append(ratio)
    for ratios in groups.values():
        ratios.sort()
    return groups


def derive_metrics(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill ratio, cap rate and GRM when not precomputed.

    Rows carry price and rent in cents; every derived metric is unitless.
    """
    price = to_number(row.get('list_price'))
    rent = to_number(row.get('estimated_rent'))
    if to_number(row.get('price_to_rent_ratio')) is None:
        row['price_to_rent_ratio'] = metrics.price_to_rent_ratio(price, rent)
    if to_number(row.get('cap_rate')) is None:
        row['cap_rate'] = metrics.cap_rate(price, rent)
    if to_number(row.get('gross_rent_multiplier')) is None:
        row['gross_rent_multiplier'] = metrics.gross_rent_multiplier(price, rent)
    return row


def enrich_row(
    row: Mapping[str, Any],
    settings: SearchSettings,
    peer_ratios: Optional[List[float]] = None,
) -> Dict[str, Any]:
    """
    Enrich one row; returns a new dict.

    When peer_ratios has at least settings.peer_min_sample entries the
    market-relative fields are recomputed from them, otherwise a stored
    ratio_vs_market_percent is kept as-is.
    """
    enriched = derive_metrics(dict(row))
    ratio = to_number(enriched.get('price_to_rent_ratio'))

    if peer_ratios is not None and len(peer_ratios) >= settings.peer_min_sample:
        stats = metrics.summarize(peer_ratios, min_sample=settings.peer_min_sample)
        enriched['ratio_vs_market_percent'] = ratio_vs_market_percent(
            ratio, peer_ratios, settings.peer_min_sample
        )
        enriched['market_percentile'] = (
            round(metrics.percentile_rank(peer_ratios, ratio), 1) if ratio is not None else None
        )
        enriched['market_median_ratio'] = round(stats['median'], 2)
        enriched['peer_count'] = stats['count']
        enriched['deal_quality'] = deal_quality(ratio, stats)
    else:
        enriched.setdefault('deal_quality', DealQuality.UNKNOWN)

    enriched['is_exceptional_deal'] = is_exceptional_deal(
        ratio, to_number(enriched.get('ratio_vs_market_percent')), settings
    )
    return enriched


def enrich_rows(
    rows: Iterable[Mapping[str, Any]],
    settings: SearchSettings,
    peer_groups: Optional[Mapping[PeerKey, List[float]]] = None,
    *,
    with_score: bool = False,
) -> List[Dict[str, Any]]:
    """Enrich rows in order. peer_groups comes from build_peer_groups()."""
    enriched_rows = []
    for row in rows:
        peers = peer_groups.get(peer_key(row)) if peer_groups else None
        enriched = enrich_row(row, settings, peers)
        if with_score:
            enriched['score'] = score_property(enriched, settings)
        enriched_rows.append(enriched)
    return enriched_rows


def analyze_market_position(
    subject_ratio: Optional[float],
    comp_ratios: Iterable[Any],
    settings: SearchSettings,
) -> Dict[str, Any]:
    """
    Position of one listing against its comparables (same zip, bedrooms,
    bathrooms within half a bath).

    Returns the insufficient-data shape when fewer than
    settings.market_min_sample comparables have a ratio.
    """
    ratios = sorted(r for r in (to_number(v) for v in comp_ratios) if r is not None)
    stats = metrics.summarize(ratios, min_sample=settings.market_min_sample)
    if stats['status'] != 'ok' or subject_ratio is None:
        return {
            'status': stats['status'] if stats['status'] != 'ok' else INSUFFICIENT_DATA,
            'comparable_count': len(ratios),
            'min_sample': settings.market_min_sample,
        }

    market_median = stats['median']
    vs_median = None
    if market_median > 0:
        vs_median = round(((subject_ratio / market_median) - 1) * 100, 2)

    return {
        'status': 'ok',
        'comparable_count': stats['count'],
        'subject_ratio': subject_ratio,
        'market_median': round(market_median, 2),
        'market_average': round(stats['mean'], 2),
        'p25': round(stats['p25'], 2),
        'p75': round(stats['p75'], 2),
        'percentile_rank': round(metrics.percentile_rank(ratios, subject_ratio), 1),
        'ratio_vs_market_percent': vs_median,
        'deal_quality': deal_quality(subject_ratio, stats),
    }
