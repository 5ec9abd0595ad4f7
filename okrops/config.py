"""
OKR Ops Tracker
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'okrops_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Random per-process key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _database_url(default=None):
    # Heroku-style postgres:// is rejected by SQLAlchemy 2.x
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else default


def _int_list(value, default):
    try:
        return tuple(int(v) for v in value.split(",") if v.strip()) if value else default
    except ValueError:
        return default


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "3600"))
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    # Redis (query cache + rate limit storage); memory:// keeps both in-process,
    # which only holds for a single worker
    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    QUERY_CACHE_TTL = int(os.getenv("QUERY_CACHE_TTL", "300"))

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Board / dashboard thresholds
    STALE_AFTER_DAYS = int(os.getenv("STALE_AFTER_DAYS", "14"))
    TARGET_HORIZON_DAYS = _int_list(os.getenv("TARGET_HORIZON_DAYS"), (30, 60, 90))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    # In-memory SQLite runs on a single static connection
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REDIS_URL = "memory://"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",
        },
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        redis_url = os.getenv("REDIS_URL", "")
        if not redis_url or redis_url.startswith("memory://"):
            # Invalidations must reach every worker
            raise RuntimeError("REDIS_URL must point at a shared Redis server in production")
        self.REDIS_URL = redis_url


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
