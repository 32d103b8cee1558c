"""
Property API Routes

Endpoints:
- GET /api/properties                          - filtered, sorted, paginated search
- GET /api/properties/<id>                     - detail with comparables and rental comps
- GET /api/properties/market/<state>/<city>    - market statistics for one city
"""

import time

from flask import Blueprint

from routes._route_utils import (
    get_repository,
    get_settings,
    handle_db_errors,
    log_success,
    request_filter,
    route_logger,
)
from services import market_service, search_service
from services.response_cache import cached_json

properties_bp = Blueprint('properties', __name__)
logger = route_logger('properties')


@properties_bp.route('/properties', methods=['GET'])
@handle_db_errors(logger, 'properties.search', 'Unable to retrieve properties')
@cached_json('search', lambda: request_filter().cache_params())
def search_properties():
    """
    Search active listings.

    Query params (camelCase or snake_case):
      zipCode (comma-separated), city, state, minPrice, maxPrice, minRent,
      maxRent, minRatio, maxRatio, bedrooms, bathrooms, propertyType,
      minSquareFeet, maxSquareFeet, anomaliesOnly, sortBy, sortOrder,
      limit, offset

    Malformed optional filters are ignored, never rejected.
    """
    start = time.perf_counter()
    result = search_service.search_properties(get_repository(), request_filter(), get_settings())
    log_success(logger, 'properties.search', start, {
        'returned': len(result['properties']),
        'total': result['pagination']['total'],
    })
    return result


@properties_bp.route('/properties/<int:property_id>', methods=['GET'])
@handle_db_errors(logger, 'properties.detail', 'Unable to retrieve property details')
@cached_json('property', lambda property_id: {})
def get_property(property_id):
    start = time.perf_counter()
    result = market_service.property_detail(get_repository(), property_id, get_settings())
    log_success(logger, 'properties.detail', start, {
        'property_id': property_id,
        'comparables': len(result['comparables']),
    })
    return result


@properties_bp.route('/properties/market/<state>/<city>', methods=['GET'])
@handle_db_errors(logger, 'properties.market', 'Unable to retrieve market statistics')
@cached_json('market', lambda state, city: {'state': state.upper(), 'city': city.lower()})
def market_stats(state, city):
    start = time.perf_counter()
    result = market_service.market_statistics(get_repository(), state, city, get_settings())
    log_success(logger, 'properties.market', start, {'state': state, 'city': city})
    return result
