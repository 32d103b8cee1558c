"""
Map API Routes

Endpoints:
- GET /api/map/heatmap?bounds=lat1,lng1,lat2,lng2&zoomLevel=10&minRatio=&maxPrice=
- GET /api/map/clusters?zoomLevel=8&bounds=...   - grid clusters sized by zoom
"""

import time

from flask import Blueprint

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
from services.response_cache import cached_json
from utils.normalize import lenient_float, lenient_int, split_csv

map_bp = Blueprint('map', __name__)
logger = route_logger('map')


def parse_bounds(raw):
    """"lat1,lng1,lat2,lng2" -> 4-tuple of floats; anything else -> None."""
    values = [lenient_float(part) for part in split_csv(raw)]
    if len(values) != 4 or any(v is None for v in values):
        return None
    return tuple(values)


def _requested_zoom():
    return lenient_int(query_arg('zoomLevel', 'zoom_level'))


def _zoom_level():
    zoom = _requested_zoom()
    return 10 if zoom is None else zoom


@map_bp.route('/map/heatmap', methods=['GET'])
@handle_db_errors(logger, 'map.heatmap', 'Unable to retrieve heatmap data')
@cached_json('heatmap', lambda: {
    **request_filter().cache_params(),
    'bounds': parse_bounds(query_arg('bounds')),
    'zoom': _zoom_level(),
})
def heatmap():
    start = time.perf_counter()
    result = market_service.heatmap_points(
        get_repository(),
        request_filter(),
        get_settings(),
        parse_bounds(query_arg('bounds')),
        _zoom_level(),
    )
    log_success(logger, 'map.heatmap', start, {'points': result['total_points']})
    return result


@map_bp.route('/map/clusters', methods=['GET'])
@handle_db_errors(logger, 'map.clusters', 'Unable to retrieve cluster data')
@cached_json('clusters', lambda: {
    **request_filter().cache_params(),
    'bounds': parse_bounds(query_arg('bounds')),
    'zoom': _requested_zoom(),
})
def clusters():
    start = time.perf_counter()
    result = market_service.map_clusters(
        get_repository(),
        request_filter(),
        get_settings(),
        _requested_zoom(),
        parse_bounds(query_arg('bounds')),
    )
    log_success(logger, 'map.clusters', start, {'clusters': result['total_clusters']})
    return result
