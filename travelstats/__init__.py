"""
Flask application factory
"""
from flask import Flask, jsonify
from flask_cors import CORS
import logging

from travelstats.config import settings
from travelstats.exceptions import StatisticsError

logger = logging.getLogger(__name__)


def create_app(source=None, storage=None):
    """
    Create and configure Flask application

    Args:
        source: Sparse aggregate source for statistics queries
            (default: the Redis storage)
        storage: Redis storage used for event ingestion (created if None)

    Returns:
        Flask app instance
    """
    from travelstats.core.processor import EventProcessor
    from travelstats.core.service import StatisticsService
    from travelstats.core.storage import RedisStorage

    app = Flask(__name__)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Enable CORS
    CORS(app, origins=settings.CORS_ORIGINS)

    storage = storage or RedisStorage()
    app.extensions["event_processor"] = EventProcessor(storage)
    app.extensions["statistics_service"] = StatisticsService(source or storage)

    # Register blueprints
    from travelstats.api.events import events_bp
    from travelstats.api.statistics import admin_bp, my_bp

    app.register_blueprint(events_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(my_bp)

    # API info endpoint
    @app.route("/api")
    def api_root():
        return jsonify(
            {
                "name": settings.APP_NAME,
                "version": settings.APP_VERSION,
                "status": "running",
                "endpoints": {
                    "GET /admin/statistics/transits/perDay": "Transits per day (from, to)",
                    "GET /admin/statistics/transits/perHour": "Transits per hour (date)",
                    "GET /admin/statistics/revenues/perMonth": "Revenues per month (year)",
                    "GET /admin/statistics/topBuyers": "Top buyers (limit, year)",
                    "GET /my/statistics/transits/perHour": "My transits per hour (from, to)",
                    "GET /my/statistics/expenses/perMonth": "My expenses per month (year)",
                    f"POST {settings.API_PREFIX}/events/transits": "Record transit",
                    f"POST {settings.API_PREFIX}/events/purchases": "Record purchase",
                    f"POST {settings.API_PREFIX}/events/batch": "Record batch events",
                    f"GET {settings.API_PREFIX}/events/health": "Health check",
                },
            }
        )

    # Error handlers
    @app.errorhandler(StatisticsError)
    def statistics_error(error: StatisticsError):
        if error.status_code >= 500:
            logger.error(f"Statistics request failed: {error}", exc_info=error)
            message = "Statistics temporarily unavailable" if error.status_code == 503 else "Internal server error"
        else:
            logger.warning(f"Rejected statistics request: {error}")
            message = str(error)
        return jsonify({"error": message}), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"error": "Internal server error"}), 500

    return app
