"""brushmap Flask Application"""

import logging

from flask import Flask, jsonify
from flask_restx import Api
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_caching import Cache
from flask_compress import Compress
import structlog
from datetime import datetime

from brushmap.config.settings import settings
from brushmap.api.routes import register_routes
from brushmap.services.boundary_store import BoundaryStore
from brushmap.services.editing_session import SessionRegistry
from brushmap.utils.exceptions import BrushMapException, PersistenceError, ConfigurationError
from brushmap.utils.monitoring import add_performance_monitoring, get_performance_report

def configure_logging(level: str = settings.LOG_LEVEL, log_format: str = settings.LOG_FORMAT):
    """Route structlog through the stdlib root logger at ``level``"""
    level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

# Configure structured logging
configure_logging()

logger = structlog.get_logger(__name__)

def _error_body(error: BrushMapException) -> dict:
    return {
        "error": type(error).__name__,
        "message": str(error)
    }

def create_app(config_name: str = "development", boundary_store=None) -> Flask:
    """Create and configure Flask application

    Args:
        config_name: "development", "production" or "testing"
        boundary_store: Store to use instead of the PostGIS-backed BoundaryStore
    """

    # Create Flask app
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.SECRET_KEY
    app.config["DEBUG"] = settings.DEBUG and config_name != "production"
    app.config["TESTING"] = config_name == "testing"
    app.config["CONTAINMENT_BACKEND"] = settings.CONTAINMENT_BACKEND
    app.config["RATELIMIT_ENABLED"] = config_name != "testing"

    # Configure CORS for the map frontends
    CORS(app,
         origins=settings.ALLOWED_ORIGINS,
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
         supports_credentials=True
    )

    # Boundary GeoJSON compresses very well
    Compress(app)
    app.config['COMPRESS_ALGORITHM'] = 'gzip'
    app.config['COMPRESS_LEVEL'] = 6
    app.config['COMPRESS_MIN_SIZE'] = 500

    # Configure Rate Limiting
    limiter = Limiter(
        app=app,
        key_func=get_remote_address,
        default_limits=[
            f"{settings.RATE_LIMIT_PER_MINUTE} per minute",
            f"{settings.RATE_LIMIT_PER_HOUR} per hour"
        ],
        storage_uri=settings.REDIS_URL if settings.USE_CACHE else "memory://"
    )

    # Configure Caching
    cache_config = {
        "CACHE_TYPE": "RedisCache" if settings.USE_CACHE and config_name != "testing" else "SimpleCache",
        "CACHE_DEFAULT_TIMEOUT": settings.CACHE_TTL
    }

    if cache_config["CACHE_TYPE"] == "RedisCache":
        cache_config["CACHE_REDIS_URL"] = settings.REDIS_URL

    cache = Cache(app, config=cache_config)

    # Configure API
    api = Api(
        app,
        version="1.0",
        title="brushmap - Territory Boundary Brush API",
        description="Paint, edit and query territory boundaries with a brush",
        doc="/docs" if app.config["DEBUG"] else False,
        prefix=f"/api/{settings.API_VERSION}"
    )

    # Store extensions and services on app
    app.limiter = limiter
    app.cache = cache
    app.api = api
    app.boundary_store = boundary_store or BoundaryStore()
    app.sessions = SessionRegistry()

    # Register routes
    register_routes(api)

    # Add performance monitoring
    add_performance_monitoring(app)

    # Performance metrics endpoint
    @app.route("/metrics/performance")
    def performance_metrics():
        """Get performance metrics"""
        return jsonify(get_performance_report())

    # Health check endpoint (outside API prefix)
    @app.route("/health", methods=["GET"])
    def health_check():
        """Basic health check endpoint"""
        health_status = {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "version": settings.API_VERSION,
            "open_sessions": len(app.sessions),
            "services": {}
        }

        # Check the boundary store
        try:
            schema_ok = app.boundary_store.ensure_schema()
            health_status["services"]["database"] = {
                "status": "healthy" if schema_ok else "unhealthy"
            }
            if not schema_ok:
                health_status["status"] = "degraded"
        except (PersistenceError, ConfigurationError) as e:
            health_status["services"]["database"] = {
                "status": "unhealthy",
                "error": str(e)
            }
            health_status["status"] = "degraded"

        health_status["services"]["database"]["pool"] = app.boundary_store.pool_status()

        status_code = 200 if health_status["status"] == "healthy" else 503
        return jsonify(health_status), status_code

    # Error handlers
    @api.errorhandler(BrushMapException)
    def handle_api_exception(error):
        """Handle brushmap exceptions raised inside API resources"""
        logger.error("brushmap exception", error=str(error), type=type(error).__name__)
        return _error_body(error), error.status_code

    @app.errorhandler(BrushMapException)
    def handle_brushmap_exception(error):
        """Handle brushmap exceptions raised outside the API"""
        logger.error("brushmap exception", error=str(error), type=type(error).__name__)
        return jsonify(_error_body(error)), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle 404 errors"""
        return jsonify({
            "error": "NotFound",
            "message": "The requested resource was not found"
        }), 404

    @app.errorhandler(500)
    def handle_internal_error(error):
        """Handle 500 errors"""
        logger.error("Internal server error", error=str(error))
        return jsonify({
            "error": "InternalServerError",
            "message": "An internal server error occurred"
        }), 500

    @app.route('/')
    def welcome():
        """Welcome page with endpoint overview"""
        prefix = f"/api/{settings.API_VERSION}"
        return jsonify({
            "message": "brushmap - paint territory boundaries with a brush",
            "version": "1.0",
            "status": "operational",
            "documentation": "/docs" if app.config["DEBUG"] else "Contact admin for API docs",
            "health_check": "/health",
            "endpoints": {
                "open_session": {"method": "POST", "url": f"{prefix}/sessions"},
                "pointer_event": {"method": "POST", "url": f"{prefix}/sessions/{{id}}/pointer"},
                "finish_session": {"method": "POST", "url": f"{prefix}/sessions/{{id}}/finish"},
                "territories_at_point": {"method": "GET", "url": f"{prefix}/territories/at-point?lng=&lat="},
                "territories_geojson": {"method": "GET", "url": f"{prefix}/territories/geojson"},
                "territory_boundary": {"method": "GET, PUT, DELETE", "url": f"{prefix}/territories/{{id}}/boundary"}
            }
        })

    # Log app startup
    logger.info(
        "brushmap Flask app created",
        config=config_name,
        debug=app.config["DEBUG"],
        cache_enabled=settings.USE_CACHE,
        containment_backend=app.config["CONTAINMENT_BACKEND"]
    )

    return app

if __name__ == "__main__":
    # Validate settings
    settings.validate()

    app = create_app()
    app.run(
        host=settings.API_HOST,
        port=settings.API_PORT,
        debug=settings.DEBUG
    )
