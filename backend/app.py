"""
Flask Application Factory - ROIscout property search API

All listing reads go through raw SQL (SQLAlchemy text() with :name binds)
assembled by utils.filter_builder / utils.query_builder. Ranking and
aggregation run in Python over the returned rows.

The API is public and read-only apart from the export endpoints (POST
with a JSON filter body).
"""

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate

from config import Config
from models.database import db

# Initialized in create_app
migrate = Migrate()


def _configure_logging(app):
    level = logging.DEBUG if app.config.get('DEBUG') else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object if config_object is not None else Config())
    _configure_logging(app)

    CORS(app,
         resources={r"/api/*": {"origins": app.config.get('CORS_ORIGINS', '*')}},
         methods=["GET", "POST", "OPTIONS"],
         allow_headers=["Content-Type", "X-Request-ID"],
         expose_headers=["X-Request-ID", "X-DB-Time-Ms", "X-Query-Count", "Content-Disposition"],
         supports_credentials=False)

    # === MIDDLEWARE ===
    from api.middleware import (
        setup_error_handlers,
        setup_query_timing_middleware,
        setup_request_id_middleware,
        setup_request_logging_middleware,
    )
    setup_request_id_middleware(app)
    setup_query_timing_middleware(app)
    setup_request_logging_middleware(app)
    setup_error_handlers(app)

    db.init_app(app)
    migrate.init_app(app, db)

    from config import SearchSettings
    from services.property_repository import PropertyRepository
    from services.response_cache import TTLCache

    settings = app.config.get('SEARCH_SETTINGS') or SearchSettings()
    app.extensions['roiscout'] = {
        'settings': settings,
        'repository': PropertyRepository(db),
        'cache': TTLCache(maxsize=settings.cache_max_size, ttl=settings.cache_ttl_seconds),
    }

    with app.app_context():
        # Import models before create_all so their tables are registered
        from models.property import Property  # noqa: F401
        from models.rental_comp import RentalComp  # noqa: F401

        env = (os.environ.get("ENV") or os.environ.get("FLASK_ENV") or os.environ.get("APP_ENV") or "").lower()
        is_prod = env in {"prod", "production"}
        if app.config.get("TESTING") or not is_prod:
            db.create_all()

    # Register routes (all public, under /api)
    from routes.analytics import analytics_bp
    from routes.data import data_bp
    from routes.export import export_bp
    from routes.health import health_bp
    from routes.map import map_bp
    from routes.properties import properties_bp

    for blueprint in (properties_bp, analytics_bp, data_bp, map_bp, export_bp, health_bp):
        app.register_blueprint(blueprint, url_prefix='/api')

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "name": "ROIscout Property Search API",
            "status": "running",
            "endpoints": sorted(
                rule.rule for rule in app.url_map.iter_rules() if rule.rule.startswith('/api/')
            ),
        })

    return app


def run_app():
    """Main entry point for local development - starts server with Flask's dev server."""
    print("=" * 60)
    print("Starting ROIscout API")
    print("=" * 60)

    app = create_app()

    with app.app_context():
        from models.property import Property

        active = Property.query.filter_by(is_active=True).count()
        print(f"\n📊 Database Status:")
        print(f"   Active listings: {active:,}")
        if not active:
            print("   ⚠️  No listings loaded")

    print("=" * 60)
    app.run(debug=app.config.get('DEBUG', False), host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))


if __name__ == "__main__":
    run_app()
