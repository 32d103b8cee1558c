"""
Data API Routes

Endpoints:
- GET /api/data/pricing-data       - per-zip pricing for one state (state required)
- GET /api/data/states             - supported state codes
- GET /api/data/counties/<state>  - counties with listings in a state
- GET /api/data/zipcodes/<county> - zip codes in a county (optional ?state=)
"""

import time

from flask import Blueprint, jsonify

from constants import US_STATE_CODES
from routes._route_utils import (
    get_repository,
    get_settings,
    handle_db_errors,
    log_success,
    query_arg,
    request_filter,
    route_logger,
)
from services import market_service
from utils.normalize import ValidationError, clean_str

data_bp = Blueprint('data', __name__)
logger = route_logger('data')


@data_bp.route('/data/pricing-data', methods=['GET'])
@handle_db_errors(logger, 'data.pricing', 'Unable to retrieve pricing data')
def pricing_data():
    """
    Query params:
      state (required), county, zipCode, minPrice, maxPrice, minRent

    Missing state -> 400 "State parameter is required".
    """
    start = time.perf_counter()
    search_filter = request_filter(require_state=True)
    county = clean_str(query_arg('county'))
    result = market_service.pricing_data(get_repository(), search_filter, get_settings(), county)
    log_success(logger, 'data.pricing', start, {'state': search_filter.state, 'zips': result['total']})
    return jsonify(result)


@data_bp.route('/data/states', methods=['GET'])
def states():
    return jsonify({'states': US_STATE_CODES})


@data_bp.route('/data/counties/<state>', methods=['GET'])
@handle_db_errors(logger, 'data.counties', 'Unable to retrieve counties list')
def counties(state):
    state_code = (clean_str(state) or '').upper()
    if state_code not in US_STATE_CODES:
        raise ValidationError("Please provide a valid 2-letter state code", field='state')
    start = time.perf_counter()
    result = market_service.counties_for_state(get_repository(), state_code)
    log_success(logger, 'data.counties', start, {'state': state_code, 'counties': result['total']})
    return jsonify(result)


@data_bp.route('/data/zipcodes/<county>', methods=['GET'])
@handle_db_errors(logger, 'data.zipcodes', 'Unable to retrieve zip codes list')
def zip_codes(county):
    county_name = clean_str(county)
    if not county_name:
        raise ValidationError("Please provide a valid county name", field='county')
    state = clean_str(query_arg('state'))
    start = time.perf_counter()
    result = market_service.zip_codes_for_county(
        get_repository(), county_name, state.upper() if state else None
    )
    log_success(logger, 'data.zipcodes', start, {'county': county_name, 'zips': result['total']})
    return jsonify(result)
