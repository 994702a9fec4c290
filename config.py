import os
import sys

from dotenv import load_dotenv
from loguru import logger

# ------------------- Load .env -------------------
load_dotenv()

DEFAULT_CLASSIFY_URL = "http://classify.oclc.org/classify2/Classify"


def normalize_database_url(url):
    """Heroku-style URLs use the legacy scheme and need TLS without verification."""
    if not url:
        return "sqlite:///routefinder.db"

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if url.startswith("postgresql") and "sslmode" not in url:
        url += ("&" if "?" in url else "?") + "sslmode=require"

    return url


def engine_options(url, pool_size=5, pool_timeout=10, statement_timeout_ms=5000):
    # SQLite pools reject the sizing arguments
    if not url.startswith("postgresql"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": pool_size,
        "pool_timeout": pool_timeout,
        "connect_args": {"options": f"-c statement_timeout={statement_timeout_ms}"},
    }


def parse_origins(raw):
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins or "*" in origins:
        return "*"
    return origins


def load_config():
    database_url = normalize_database_url(os.getenv("DATABASE_URL"))

    return {
        "PORT": int(os.getenv("PORT", "3100")),
        "SECRET_KEY": os.getenv("SECRET_KEY", "change-this-secret-key"),
        "SQLALCHEMY_DATABASE_URI": database_url,
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "SQLALCHEMY_ENGINE_OPTIONS": engine_options(
            database_url,
            pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "10")),
            statement_timeout_ms=int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000")),
        ),
        "CLASSIFY_URL": os.getenv("CLASSIFY_URL", DEFAULT_CLASSIFY_URL),
        "CLASSIFY_TIMEOUT": float(os.getenv("CLASSIFY_TIMEOUT", "10")),
        "CORS_ORIGINS": parse_origins(os.getenv("CORS_ORIGINS", "*")),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
    }


# ------------------- Logging -------------------
def configure_logging(level="INFO"):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )
