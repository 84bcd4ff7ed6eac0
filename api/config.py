"""
Environment-aware configuration.
Identity provider, action link, refresh cookie, document store and SMTP
settings are all read from the environment (or .env).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


class BaseConfig:
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Document store for action signing keys
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///action-keys.db")

    # Identity provider (Firebase Authentication)
    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
    FIREBASE_WEB_API_KEY = os.getenv("FIREBASE_WEB_API_KEY", "")
    IDENTITY_TOOLKIT_URL = os.getenv("IDENTITY_TOOLKIT_URL", "https://identitytoolkit.googleapis.com/v1")
    SECURE_TOKEN_URL = os.getenv("SECURE_TOKEN_URL", "https://securetoken.googleapis.com/v1")
    IDP_TIMEOUT_SECONDS = float(os.getenv("IDP_TIMEOUT_SECONDS", "10"))

    # Action tokens (email verification, password reset)
    ACTION_BASE_URL = os.getenv("ACTION_BASE_URL", "http://localhost:3000/auth")
    ACTION_TOKEN_ALGORITHM = os.getenv("ACTION_TOKEN_ALGORITHM", "HS256")
    VERIFY_EMAIL_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("VERIFY_EMAIL_TOKEN_EXPIRES_SECONDS", "86400")))
    RESET_PASSWORD_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("RESET_PASSWORD_TOKEN_EXPIRES_SECONDS", "3600")))

    # Refresh token cookie
    REFRESH_COOKIE_NAME = "refresh_token"
    REFRESH_COOKIE_DOMAIN = os.getenv("REFRESH_COOKIE_DOMAIN") or None
    REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/auth/refresh-token")
    REFRESH_COOKIE_MAX_AGE = int(os.getenv("REFRESH_COOKIE_MAX_AGE", str(30 * 24 * 60 * 60)))

    ACCESS_TOKEN_CACHE_SECONDS = int(os.getenv("ACCESS_TOKEN_CACHE_SECONDS", "600"))

    # Email dispatch
    SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = _bool(os.getenv("SMTP_USE_TLS", "true"))
    SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@localhost")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()


class ProductionConfig(BaseConfig):
    DEBUG = False


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    FIREBASE_WEB_API_KEY = "test-api-key"
    ACTION_BASE_URL = "https://app.example.com/auth"
    REFRESH_COOKIE_DOMAIN = None
    LOG_LEVEL = "DEBUG"


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
