"""
Configuration for the marketplace Flask app.

Database: DATABASE_URL wins everywhere and is mandatory on Railway/Render.
Locally DB_HOST selects PostgreSQL, otherwise a SQLite file under instance/.
Payment gateway keys are not read here; see utils/payment_gateway.py.
"""
import os
from pathlib import Path
from datetime import timedelta
from urllib.parse import quote_plus

BASE_DIR = Path(__file__).parent
INSTANCE_DIR = BASE_DIR / "instance"


def _env_flag(name, default="false"):
    return os.environ.get(name, default).strip().lower() in ("true", "on", "1", "yes")


def _is_production():
    """Railway, Render or FLASK_ENV=production"""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _normalize_database_url(url):
    """postgres:// and postgresql:// become postgresql+psycopg2://"""
    url = url.strip()
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url[len(prefix):]
    return url


def _get_database_uri():
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if url:
        return _normalize_database_url(url)
    if _is_production():
        raise RuntimeError(
            "DATABASE_URL is required in production (Railway/Render). "
            "Set it in your service environment variables."
        )

    host = os.environ.get("DB_HOST")
    if not host:
        INSTANCE_DIR.mkdir(exist_ok=True)
        return "sqlite:///" + str(INSTANCE_DIR / "marketplace.db")

    password = quote_plus(os.environ.get("DB_PASSWORD", ""))
    return "postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}".format(
        user=os.environ.get("DB_USER", "marketplace"),
        password=password,
        host=host,
        port=os.environ.get("DB_PORT", "5432"),
        name=os.environ.get("DB_NAME", "marketplace"),
    )


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Flask-Login session cookie
    PERMANENT_SESSION_LIFETIME = timedelta(days=1)
    REMEMBER_COOKIE_DURATION = timedelta(days=14)
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Flask-Mail; OTP and receipt mails are disabled while MAIL_SERVER is unset
    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = (os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME")
                           or "noreply@marketplace.local")


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG").upper()


class ProductionConfig(Config):
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", "true")
    REMEMBER_COOKIE_SECURE = True


def get_config():
    """Config class for the current environment"""
    if _is_production():
        return ProductionConfig
    if os.environ.get("FLASK_ENV") == "development":
        return DevelopmentConfig
    return Config
