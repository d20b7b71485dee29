# Service configuration
import os
import logging

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Redis prediction cache
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
PREDICTION_CACHE_TTL = int(os.getenv("PREDICTION_CACHE_TTL", "1800"))   # 30 minutes
PREDICTION_CACHE_ENABLED = os.getenv("PREDICTION_CACHE_ENABLED", "false").lower() in ("1", "true", "yes")

# HTTP service
API_PREFIX = os.getenv("API_PREFIX", "/api/v1/gradecut")
SERVICE_HOST = os.getenv("SERVICE_HOST", "0.0.0.0")
SERVICE_PORT = int(os.getenv("SERVICE_PORT", "8000"))
