"""
Export API Routes

Endpoints:
- POST /api/export/csv   - filtered results as a CSV attachment
- POST /api/export/pdf   - filtered results as a PDF attachment

The JSON body carries the same filters as GET /api/properties.
"""

import time

from flask import Blueprint, Response

from routes._route_utils import (
    get_repository,
    get_settings,
    handle_db_errors,
    log_success,
    request_filter,
    route_logger,
)
from services import export_service, search_service

export_bp = Blueprint('export', __name__)
logger = route_logger('export')


def _attachment(body, mimetype, extension):
    return Response(
        body,
        mimetype=mimetype,
        headers={
            'Content-Disposition': f'attachment; filename="{export_service.export_filename(extension)}"',
            'Cache-Control': 'no-store',
        },
    )


@export_bp.route('/export/csv', methods=['POST'])
@handle_db_errors(logger, 'export.csv', 'Unable to export CSV')
def export_csv():
    start = time.perf_counter()
    rows = search_service.export_rows(get_repository(), request_filter(), get_settings())
    body = export_service.render_csv(rows)
    log_success(logger, 'export.csv', start, {'rows': len(rows)})
    return _attachment(body, 'text/csv', 'csv')


@export_bp.route('/export/pdf', methods=['POST'])
@handle_db_errors(logger, 'export.pdf', 'Unable to export PDF')
def export_pdf():
    start = time.perf_counter()
    search_filter = request_filter()
    rows = search_service.export_rows(get_repository(), search_filter, get_settings())
    body = export_service.render_pdf(rows, search_filter.echo())
    log_success(logger, 'export.pdf', start, {'rows': len(rows), 'bytes': len(body)})
    return _attachment(body, 'application/pdf', 'pdf')
