"""
Configuration classes, selected by name in create_app().

Every value can be overridden from the environment so the same code runs
on a laptop, in a container, and under pytest.
"""
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-only-change-me")

    # None → SQLite file inside the Flask instance folder (see create_app)
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_ECHO = False

    # Scryfall asks for at most ~10 requests per second
    SCRYFALL_RATE_SLEEP = float(os.environ.get("SCRYFALL_RATE_SLEEP", "0.1"))
    PRICE_REFRESH_PAUSE = float(os.environ.get("PRICE_REFRESH_PAUSE", "0.1"))

    # Flask-Limiter rule for the bulk price refresh endpoint
    PRICE_REFRESH_LIMIT = os.environ.get("PRICE_REFRESH_LIMIT", "6 per hour")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_ENABLED = True

    WTF_CSRF_ENABLED = True

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    DATABASE_URL = "sqlite://"
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SCRYFALL_RATE_SLEEP = 0.0
    PRICE_REFRESH_PAUSE = 0.0
    LOG_LEVEL = "WARNING"


config = {
    "development": DevelopmentConfig,
    "production":  ProductionConfig,
    "testing":     TestingConfig,
    "default":     DevelopmentConfig,
}
