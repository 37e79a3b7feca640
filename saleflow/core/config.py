# saleflow/core/config.py

import os
from dotenv import load_dotenv
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)

load_dotenv()

# =====================================================
# APPLICATION
# =====================================================
APP_ENV = os.getenv("APP_ENV")
if APP_ENV not in {"development", "staging", "production", "test"}:
    raise ValueError("APP_ENV must be development | staging | production | test")

IS_PRODUCTION = APP_ENV == "production"

# =====================================================
# DATABASE
# =====================================================
DB_TYPE = os.getenv("DB_TYPE")
if DB_TYPE not in {"postgres", "sqlite"}:
    raise ValueError("DB_TYPE must be postgres | sqlite")

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres")

elif DB_TYPE == "sqlite":
    if IS_PRODUCTION:
        raise ValueError("SQLite is NOT allowed in production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./saleflow.db")

# ---- Pool tuning (safe defaults) ----
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 20))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))
DB_ECHO_POOL = os.getenv("DB_ECHO_POOL", "false").lower() == "true"

# ---- SSL ----
DB_SSL_VERIFY = os.getenv("DB_SSL_VERIFY", "true").lower() == "true"
if IS_PRODUCTION and not DB_SSL_VERIFY:
    logger.warning("Running in production with relaxed database SSL verification")

# =====================================================
# SHOPIFY
# =====================================================
SHOPIFY_API_KEY = os.getenv("SHOPIFY_API_KEY")
SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET")
if not SHOPIFY_API_KEY or not SHOPIFY_API_SECRET:
    raise ValueError("SHOPIFY_API_KEY and SHOPIFY_API_SECRET must be set")

SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-10")
SHOPIFY_HTTP_TIMEOUT = float(os.getenv("SHOPIFY_HTTP_TIMEOUT", 30))

# Session tokens are HS256 JWTs signed with the app secret
SESSION_TOKEN_ALGORITHM = "HS256"

# =====================================================
# SCHEDULER
# =====================================================
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"
SCHEDULER_INTERVAL_MINUTES = int(os.getenv("SCHEDULER_INTERVAL_MINUTES", 1))
if SCHEDULER_INTERVAL_MINUTES < 1:
    raise ValueError("SCHEDULER_INTERVAL_MINUTES must be >= 1")

if IS_PRODUCTION and not ENABLE_SCHEDULER:
    logger.warning(
        "In-process scheduler disabled; sales only move when /api/scheduler is called"
    )
