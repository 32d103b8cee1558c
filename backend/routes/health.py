"""
Health check endpoint.

GET /api/health -> 200 when the database answers, 503 otherwise.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from db.sql import run_sql_scalar
from models.database import db
from services.response_cache import get_cache

health_bp = Blueprint('health', __name__)
logger = logging.getLogger('roiscout.routes.health')


@health_bp.route('/health', methods=['GET'])
def health():
    try:
        run_sql_scalar(db, "SELECT 1")
        database = 'ok'
    except SQLAlchemyError:
        logger.exception("health_check_failed")
        db.session.rollback()
        database = 'unavailable'

    healthy = database == 'ok'
    body = {
        'status': 'healthy' if healthy else 'degraded',
        'database': database,
        'cache': get_cache().stats(),
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    return jsonify(body), 200 if healthy else 503
