"""
Analytics API Routes

Endpoints:
- GET /api/analytics/anomalies                   - listings well above their peer median
- GET /api/analytics/market-summary              - per-zip aggregates
- GET /api/analytics/trends                      - by-state and by-type aggregates
- GET /api/analytics/properties/<id>/report      - score, market position, investment metrics
- GET /api/analytics/dashboard-stats             - headline counts, trend and recent activity
- POST /api/analytics/investment-metrics         - metrics for a supplied price, rent and expenses
"""

import time

from flask import Blueprint, jsonify, request

from routes._route_utils import (
    get_repository,
    get_settings,
    handle_db_errors,
    log_success,
    query_arg,
    request_filter,
    route_logger,
)
from services import market_service, search_service
from services.response_cache import cached_json
from utils.normalize import lenient_float

analytics_bp = Blueprint('analytics', __name__)
logger = route_logger('analytics')


def _min_improvement():
    return lenient_float(query_arg('minImprovement', 'min_improvement'))


@analytics_bp.route('/analytics/anomalies', methods=['GET'])
@handle_db_errors(logger, 'analytics.anomalies', 'Unable to find anomalies')
@cached_json('anomalies', lambda: {
    **request_filter().cache_params(),
    'min_improvement': _min_improvement(),
})
def anomalies():
    """
    Query params:
      minImprovement: minimum % above peer median (default from settings, 15)
      plus every search filter (zipCode, maxPrice, ...), limit (max 100)
    """
    start = time.perf_counter()
    result = search_service.find_anomalies(
        get_repository(), request_filter(), get_settings(), _min_improvement()
    )
    log_success(logger, 'analytics.anomalies', start, {'returned': len(result['anomalies'])})
    return result


@analytics_bp.route('/analytics/market-summary', methods=['GET'])
@handle_db_errors(logger, 'analytics.market_summary', 'Unable to retrieve market summary')
@cached_json('market-summary', lambda: request_filter().cache_params())
def market_summary():
    start = time.perf_counter()
    result = market_service.market_summary(get_repository(), request_filter(), get_settings())
    log_success(logger, 'analytics.market_summary', start, {'markets': len(result['markets'])})
    return result


@analytics_bp.route('/analytics/trends', methods=['GET'])
@handle_db_errors(logger, 'analytics.trends', 'Unable to retrieve trends')
@cached_json('trends', lambda: request_filter().cache_params())
def trends():
    start = time.perf_counter()
    result = market_service.market_trends(get_repository(), request_filter(), get_settings())
    log_success(logger, 'analytics.trends', start, {'states': len(result['by_state'])})
    return result


@analytics_bp.route('/analytics/properties/<int:property_id>/report', methods=['GET'])
@handle_db_errors(logger, 'analytics.report', 'Unable to build property report')
@cached_json('report', lambda property_id: {})
def property_report(property_id):
    start = time.perf_counter()
    result = market_service.property_report(get_repository(), property_id, get_settings())
    log_success(logger, 'analytics.report', start, {
        'property_id': property_id,
        'score': result['score']['total_score'],
    })
    return result


@analytics_bp.route('/analytics/dashboard-stats', methods=['GET'])
@handle_db_errors(logger, 'analytics.dashboard', 'Unable to retrieve dashboard statistics')
@cached_json('dashboard', lambda: {})
def dashboard_stats():
    start = time.perf_counter()
    result = market_service.dashboard_stats(get_repository(), get_settings())
    log_success(logger, 'analytics.dashboard', start, {'total': result['totalProperties']})
    return result


@analytics_bp.route('/analytics/investment-metrics', methods=['POST'])
def investment_metrics():
    """
    JSON body: list_price, monthly_rent (required, dollars) and an optional
    expenses object (property_tax, insurance, maintenance, vacancy,
    management; monthly dollars).

    Missing or non-positive price/rent -> 400.
    """
    result = market_service.investment_analysis(request.get_json(silent=True))
    return jsonify(result)
