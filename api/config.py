"""
Environment-aware configuration.
Values come from the environment (a .env file is read if present).
JWT_SECRET has no default: without it every token operation fails with
jwt_secret_missing instead of signing with a guessable key.
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_bool(name: str):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # CORS: comma-separated list of origins; credentials are allowed so the
    # refresh cookie can travel cross-origin
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///jwt-sessions.db")
    SQL_ECHO = _env_bool("SQL_ECHO", False)

    # token settings
    JWT_SECRET = os.getenv("JWT_SECRET") or None
    JWT_ISSUER = os.getenv("JWT_ISSUER", "jwt-session-api")
    JWT_ACCESS_TTL = int(os.getenv("JWT_ACCESS_TTL", "3600"))
    JWT_REFRESH_TTL = int(os.getenv("JWT_REFRESH_TTL", "2592000"))
    JWT_ROTATE_REFRESH_TOKENS = _env_bool("JWT_ROTATE_REFRESH_TOKENS", True)
    JWT_REVOKE_ON_REUSE = _env_bool("JWT_REVOKE_ON_REUSE", True)
    JWT_TOKEN_TYPE = os.getenv("JWT_TOKEN_TYPE", "jwt")
    TOKEN_RETENTION_SECONDS = int(os.getenv("TOKEN_RETENTION_SECONDS", "0"))

    # refresh cookie overrides (None = environment default)
    COOKIE_NAME = os.getenv("COOKIE_NAME") or None
    COOKIE_PATH = os.getenv("COOKIE_PATH") or None
    COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
    COOKIE_SECURE = _env_optional_bool("COOKIE_SECURE")
    COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE") or None


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    APP_ENV = "development"
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class StagingConfig(BaseConfig):
    APP_ENV = "staging"


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "production"


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "testing"
    DATABASE_URL = "sqlite://"
    JWT_SECRET = None
    LOG_LEVEL = "WARNING"


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (development/staging/production).
    """
    env = (name or os.getenv("APP_ENV", "development")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["stage", "staging"]:
        return StagingConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
