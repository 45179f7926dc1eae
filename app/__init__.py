import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


# Use Redis in production for shared rate limiting across multiple workers
limiter_storage_uri = "memory://"
redis_url = os.environ.get("REDIS_URL") or os.environ.get("CACHE_REDIS_URL")
if redis_url:
    try:
        import redis

        redis_client = redis.Redis.from_url(redis_url)
        redis_client.ping()
        limiter_storage_uri = redis_url
        logger.info(f"Rate limiter using Redis storage at {redis_url}")
    except (ImportError, redis.exceptions.ConnectionError) as e:
        logger.warning(f"Redis not available for rate limiter, using memory storage: {e}")

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
    storage_uri=limiter_storage_uri,
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SECURE"] = (
        False
        if app.config.get("DEBUG")
        else app.config.get("FLASK_ENV") == "production"
    )

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Import and register blueprints
    from app.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from app.utils.logging_config import setup_logging

    setup_logging(app)

    from app.utils.performance import init_request_timing

    init_request_timing(app)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from app.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    return app


@login_manager.user_loader
def load_user(user_id):
    from app.models import User

    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required"}), 401


def register_error_handlers(app):
    """Register global error handlers"""
    from app.services.exceptions import PoolServiceError

    @app.after_request
    def after_request(response):
        # Add security headers to all responses
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    @app.errorhandler(PoolServiceError)
    def handle_pool_service_error(error):
        db.session.rollback()
        app.logger.info(
            f"{error.__class__.__name__}: {error.message} - Path: {request.path}"
        )
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "Too many requests"}), 429


from app import models  # noqa: F401, E402 - imported for model registration
