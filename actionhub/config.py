"""
Settings per environment, selected by APP_ENV (development, testing, production).

Every value comes from the environment; the defaults only make a local
checkout start.
"""

import os
import secrets

_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default):
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _database_url(fallback=None):
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgres://"):
        # SQLAlchemy only accepts the postgresql:// scheme
        url = "postgresql://" + url[len("postgres://"):]
    return url or fallback


class Config:
    DEBUG = False
    TESTING = False
    # A per-process key logs everyone out on restart; production sets its own
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = _env_int("JWT_ACCESS_EXPIRES", 3600)

    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

    # Directory reads impersonate this Workspace admin (domain-wide delegation)
    GSUITE_ADMIN_EMAIL = os.getenv("GSUITE_ADMIN_EMAIL")
    GOOGLE_APPLICATION_CREDENTIALS = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    WORKSPACE_TIMEOUT = _env_int("WORKSPACE_TIMEOUT", 20)
    WORKSPACE_SYNC_ON_LOGIN = _env_bool("WORKSPACE_SYNC_ON_LOGIN", True)

    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(_ROOT, 'instance', 'actionhub_dev.db')}"
    )


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret"
    JWT_SECRET_KEY = "testing-jwt-secret"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    FIREBASE_PROJECT_ID = "actionhub-test"
    GSUITE_ADMIN_EMAIL = "admin@example.com"
    GOOGLE_APPLICATION_CREDENTIALS = None
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": _env_int("DB_POOL_SIZE", 5),
        "max_overflow": 10,
        "pool_recycle": 300,
    }

    REQUIRED = ("DATABASE_URL", "SECRET_KEY", "JWT_SECRET_KEY", "FIREBASE_PROJECT_ID")

    def __init__(self):
        missing = [name for name in self.REQUIRED if not os.getenv(name)]
        if missing:
            raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
