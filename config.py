import os
import secrets
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


class Config:
    # Generate a secure key if not provided (with warning)
    _secret_key = os.environ.get("SECRET_KEY")

    if not _secret_key:
        _secret_key = secrets.token_urlsafe(32)
        warnings.warn(
            "🔐 SECRET_KEY not set! Using auto-generated key. "
            "This will cause sessions to reset on app restart. "
            "Run 'python3 generate_secrets.py' to generate a secure key.",
            UserWarning,
        )

    SECRET_KEY = _secret_key

    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "oscars_pool_db"
            db_user = os.environ.get("DB_USER") or "oscars_user"
            db_password = os.environ.get("DB_PASSWORD") or "oscars_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "app.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    TIMEZONE = os.environ.get("TIMEZONE", "UTC")  # Default to UTC if not specified

    # Award season settings
    AWARD_YEAR = os.environ.get("AWARD_YEAR")  # Defaults to the current year when unset
    GLOBAL_POOL_NAME_TEMPLATE = os.environ.get(
        "GLOBAL_POOL_NAME_TEMPLATE", "Global Oscars Pool {year}"
    )
    # Optional hard deadline for all ballots, ISO 8601 (e.g. 2026-03-15T23:00:00+00:00)
    BALLOT_LOCK_AT = os.environ.get("BALLOT_LOCK_AT")
    DEFAULT_MULTIPLIER_FORMULA = os.environ.get("DEFAULT_MULTIPLIER_FORMULA", "log")

    # Odds feed configuration
    ODDS_FEED_URL = os.environ.get("ODDS_FEED_URL")
    ODDS_FEED_TIMEOUT = float(os.environ.get("ODDS_FEED_TIMEOUT") or 10)
    ODDS_SNAPSHOT_INTERVAL_MINUTES = int(
        os.environ.get("ODDS_SNAPSHOT_INTERVAL_MINUTES") or 10
    )
    MARKET_RESOLUTION_INTERVAL_MINUTES = int(
        os.environ.get("MARKET_RESOLUTION_INTERVAL_MINUTES") or 5
    )

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "oscars_pool:"

    # Rate limiting
    RATELIMIT_ENABLED = os.environ.get("RATELIMIT_ENABLED", "True").lower() == "true"

    # Scheduler configuration
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "True").lower() == "true"

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "True").lower() == "true"
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "True").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    SLOW_FUNCTION_THRESHOLD = float(os.environ.get("SLOW_FUNCTION_THRESHOLD", "1.0"))
    SLOW_REQUEST_THRESHOLD = float(os.environ.get("SLOW_REQUEST_THRESHOLD", "2.0"))

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"

    def __init__(self):
        super().__init__()
        # Fallback to SimpleCache if Redis isn't available in development
        try:
            import redis

            redis_client = redis.Redis.from_url(self.CACHE_REDIS_URL)
            redis_client.ping()
        except (ImportError, redis.exceptions.ConnectionError):
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "🔶 Redis not available, falling back to SimpleCache for development.",
                UserWarning,
            )


class ProductionConfig(Config):
    """Production configuration with security focus"""

    DEBUG = False

    # In production, require explicit environment variables
    def __init__(self):
        super().__init__()  # Call parent __init__ to build database URI

        if not os.environ.get("SECRET_KEY"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: SECRET_KEY not explicitly set! "
                "Using auto-generated key is not recommended for production.",
                UserWarning,
            )
        if not os.environ.get("ODDS_FEED_URL"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: ODDS_FEED_URL not set, odds snapshots are disabled!",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CACHE_TYPE = "SimpleCache"
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    BALLOT_LOCK_AT = None
    AWARD_YEAR = "2026"
    ODDS_FEED_URL = None

    def _build_database_uri(self):
        return "sqlite:///:memory:"


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
