"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session tokens (staff devices and owner dashboard)
    JWT_SECRET = os.getenv('JWT_SECRET') or SECRET_KEY
    JWT_ALGORITHM = 'HS256'
    TOKEN_TTL_SECONDS = int(os.getenv('TOKEN_TTL_SECONDS', 86400))  # 24 hours
    TOKEN_COOKIE_NAME = os.getenv('TOKEN_COOKIE_NAME', 'comanda_token')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'comanda')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'comanda')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'comanda')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'

    # Restaurant defaults (applied to new restaurants, editable in settings)
    DEFAULT_TAX_RATE = os.getenv('DEFAULT_TAX_RATE', '0.12')
    DEFAULT_SERVICE_CHARGE_RATE = os.getenv('DEFAULT_SERVICE_CHARGE_RATE', '0.10')

    # Real-time notifications
    # 'memory' for single-process deployments, 'redis' for pub/sub fan-out
    EVENTS_BACKEND = os.getenv('EVENTS_BACKEND', 'redis')
    EVENTS_REDIS_URL = os.getenv('EVENTS_REDIS_URL') or os.getenv('REDIS_URL', 'redis://redis:6379/0')
    EVENTS_CHANNEL_PREFIX = os.getenv('EVENTS_CHANNEL_PREFIX', 'comanda')
    EVENTS_PUBLISH_RETRIES = int(os.getenv('EVENTS_PUBLISH_RETRIES', '3'))
    # Events kept by the in-memory backend
    EVENTS_HISTORY_SIZE = int(os.getenv('EVENTS_HISTORY_SIZE', '1000'))

    # Redis Cache Configuration
    # Shared cache layer for catalog reads
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATALOG_TTL = int(os.getenv('CACHE_CATALOG_TTL', '120'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'comanda')

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration used by the test-suite (SQLite, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret-with-enough-length-for-hs256'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite://')
    SQLALCHEMY_ECHO = False
    EVENTS_BACKEND = 'memory'
    EVENTS_HISTORY_SIZE = 1000
    DEFAULT_TAX_RATE = '0.12'
    DEFAULT_SERVICE_CHARGE_RATE = '0.10'
    CACHE_ENABLED = False
    SENTRY_DSN = None
