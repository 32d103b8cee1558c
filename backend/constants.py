"""
Centralized Constants - SINGLE SOURCE OF TRUTH

Property types, sortable columns, deal-quality bands and score grades
are defined here and imported elsewhere.

DO NOT duplicate these definitions in other files.
"""

# =============================================================================
# PROPERTY TYPES
# =============================================================================

PROPERTY_TYPE_SINGLE_FAMILY = 'single_family'
PROPERTY_TYPE_CONDO = 'condo'
PROPERTY_TYPE_TOWNHOUSE = 'townhouse'
PROPERTY_TYPE_MULTI_FAMILY = 'multi_family'
PROPERTY_TYPE_APARTMENT = 'apartment'
PROPERTY_TYPE_OTHER = 'other'
PROPERTY_TYPE_UNKNOWN = 'unknown'

PROPERTY_TYPES = [
    PROPERTY_TYPE_SINGLE_FAMILY,
    PROPERTY_TYPE_CONDO,
    PROPERTY_TYPE_TOWNHOUSE,
    PROPERTY_TYPE_MULTI_FAMILY,
    PROPERTY_TYPE_APARTMENT,
    PROPERTY_TYPE_OTHER,
    PROPERTY_TYPE_UNKNOWN,
]

# Provider spellings seen in ingested listings
PROPERTY_TYPE_ALIASES = {
    'single family': PROPERTY_TYPE_SINGLE_FAMILY,
    'single-family': PROPERTY_TYPE_SINGLE_FAMILY,
    'sfr': PROPERTY_TYPE_SINGLE_FAMILY,
    'house': PROPERTY_TYPE_SINGLE_FAMILY,
    'condominium': PROPERTY_TYPE_CONDO,
    'town house': PROPERTY_TYPE_TOWNHOUSE,
    'townhome': PROPERTY_TYPE_TOWNHOUSE,
    'multi family': PROPERTY_TYPE_MULTI_FAMILY,
    'multi-family': PROPERTY_TYPE_MULTI_FAMILY,
    'duplex': PROPERTY_TYPE_MULTI_FAMILY,
}


def normalize_property_type(value) -> str:
    """
    Map a raw property type string to one of PROPERTY_TYPES.

    Unrecognized values map to 'other'; empty values to 'unknown'.
    """
    if value is None:
        return PROPERTY_TYPE_UNKNOWN
    key = str(value).strip().lower()
    if not key:
        return PROPERTY_TYPE_UNKNOWN
    key_snake = key.replace(' ', '_').replace('-', '_')
    if key_snake in PROPERTY_TYPES:
        return key_snake
    return PROPERTY_TYPE_ALIASES.get(key, PROPERTY_TYPE_OTHER)


# =============================================================================
# SORTING (allow-lists)
# =============================================================================

# Search endpoint: column name -> SQL expression
SEARCH_SORT_COLUMNS = {
    'list_price': 'list_price',
    'list_price_dollars': 'list_price',
    'estimated_rent': 'estimated_rent',
    'estimated_rent_dollars': 'estimated_rent',
    'price_to_rent_ratio': 'price_to_rent_ratio',
    'cap_rate': 'cap_rate',
    'ratio_vs_market_percent': 'ratio_vs_market_percent',
    'created_at': 'created_at',
    'last_updated': 'last_updated',
    'bedrooms': 'bedrooms',
    'bathrooms': 'bathrooms',
    'square_feet': 'square_feet',
    'city': 'city',
    'state': 'state',
}

ANOMALY_SORT_COLUMNS = {
    'ratio_vs_market_percent': 'ratio_vs_market_percent',
    'price_to_rent_ratio': 'price_to_rent_ratio',
    'list_price': 'list_price',
}

DEFAULT_SORT_COLUMN = 'price_to_rent_ratio'
DEFAULT_SORT_DIRECTION = 'DESC'


# =============================================================================
# DEAL QUALITY / SCORE GRADES
# =============================================================================

class DealQuality:
    """Subject ratio position against peer quartiles."""
    POOR = 'poor'
    FAIR = 'fair'
    GOOD = 'good'
    EXCELLENT = 'excellent'
    UNKNOWN = 'unknown'


# (minimum score, grade), evaluated top-down
SCORE_GRADES = [
    (85, 'A+'),
    (75, 'A'),
    (65, 'B+'),
    (55, 'B'),
    (45, 'C+'),
    (35, 'C'),
    (25, 'D'),
]
LOWEST_GRADE = 'F'

RECOMMENDATIONS = [
    (75, {
        'action': 'strong_buy',
        'message': 'Excellent investment opportunity with strong fundamentals',
        'confidence': 'high',
    }),
    (55, {
        'action': 'buy',
        'message': 'Good investment potential, worth pursuing',
        'confidence': 'medium-high',
    }),
    (35, {
        'action': 'consider',
        'message': 'Average opportunity, investigate further',
        'confidence': 'medium',
    }),
]
DEFAULT_RECOMMENDATION = {
    'action': 'pass',
    'message': 'Below-average investment metrics',
    'confidence': 'low',
}

INSUFFICIENT_DATA = 'insufficient_data'


# =============================================================================
# MARKET STATISTICS
# =============================================================================

# (upper bound in dollars exclusive, label); last bucket is open-ended
PRICE_DISTRIBUTION_BUCKETS = [
    (100_000, 'Under $100K'),
    (200_000, '$100K-$200K'),
    (300_000, '$200K-$300K'),
    (500_000, '$300K-$500K'),
    (None, 'Over $500K'),
]

# Heatmap point caps by zoom level: (min zoom exclusive, limit)
HEATMAP_LIMITS = [
    (12, 1000),
    (8, 500),
]
HEATMAP_DEFAULT_LIMIT = 200

# Cluster grid cell size in degrees by zoom level: (min zoom exclusive, size)
CLUSTER_GRID_SIZES = [
    (10, 0.001),
    (6, 0.01),
]
CLUSTER_DEFAULT_GRID_SIZE = 0.1
CLUSTER_DEFAULT_ZOOM = 8
MAX_CLUSTERS = 500

US_STATE_CODES = [
    'AL', 'AK', 'AZ', 'AR', 'CA', 'CO', 'CT', 'DE', 'DC', 'FL', 'GA', 'HI',
    'ID', 'IL', 'IN', 'IA', 'KS', 'KY', 'LA', 'ME', 'MD', 'MA', 'MI', 'MN',
    'MS', 'MO', 'MT', 'NE', 'NV', 'NH', 'NJ', 'NM', 'NY', 'NC', 'ND', 'OH',
    'OK', 'OR', 'PA', 'RI', 'SC', 'SD', 'TN', 'TX', 'UT', 'VT', 'VA', 'WA',
    'WV', 'WI', 'WY',
]


# =============================================================================
# INPUT BOUNDS
# =============================================================================

# Filter values beyond these are dropped like any other malformed filter.
# Money bounds are dollars; in cents they stay inside a 64-bit integer.
MAX_FILTER_DOLLARS = 1_000_000_000_000
# price_to_rent_ratio is NUMERIC(6, 2)
MAX_FILTER_RATIO = 10_000
# INTEGER columns (bedrooms, square_feet) and the page offset
MAX_FILTER_INT = 2**31 - 1
