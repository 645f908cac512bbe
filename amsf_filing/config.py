"""
AMSF Survey Filer
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'amsf_filing_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _env_flag(name, default):
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Remote XBRL validator
    XBRL_VALIDATOR_URL = os.getenv("XBRL_VALIDATOR_URL", "http://localhost:8000")
    XBRL_VALIDATOR_OPEN_TIMEOUT = int(os.getenv("XBRL_VALIDATOR_OPEN_TIMEOUT", "5"))
    XBRL_VALIDATOR_READ_TIMEOUT = int(os.getenv("XBRL_VALIDATOR_READ_TIMEOUT", "30"))
    XBRL_VALIDATOR_RETRIES = int(os.getenv("XBRL_VALIDATOR_RETRIES", "2"))
    REMOTE_VALIDATION_ENABLED = _env_flag("REMOTE_VALIDATION_ENABLED", "false")

    # Rendering
    XBRL_STRICT_MODE = _env_flag("XBRL_STRICT_MODE", "true")

    # Survey
    TAXONOMY_VERSION = os.getenv("TAXONOMY_VERSION", "2025")
    SUBMISSION_LOCK_TTL_MINUTES = int(os.getenv("SUBMISSION_LOCK_TTL_MINUTES", "30"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    REMOTE_VALIDATION_ENABLED = False
    XBRL_STRICT_MODE = True
    XBRL_VALIDATOR_URL = "http://validator.test"


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None

    # Lenient rendering unless explicitly switched on
    XBRL_STRICT_MODE = _env_flag("XBRL_STRICT_MODE", "false")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
