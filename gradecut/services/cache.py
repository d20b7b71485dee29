# Redis cache for integrated and per-student refined predictions
import re
import json
import hashlib
import logging
from typing import Optional, Any, Dict, List

import redis

from gradecut import config

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r'([*?\[\]\\])')


class CacheError(Exception):
    """Cache related errors"""
    pass


class PredictionCache:
    """
    Per-exam prediction store

    Every key of an exam sits under one scope, so the whole exam can be
    dropped with a single scan:

        gradecut:exam:<exam_id>:integrated
        gradecut:exam:<exam_id>:refined:<user_id>
    """

    def __init__(self, redis_client: redis.Redis, ttl: Optional[int] = None):
        self.redis = redis_client
        self.default_ttl = ttl or config.PREDICTION_CACHE_TTL
        self.prefix = "gradecut:"

    def _make_key(self, key_components: List[str]) -> str:
        key_string = ":".join(str(c) for c in key_components)
        # Redis keys stay short; long ones are hashed
        if len(key_string) > 200:
            key_hash = hashlib.md5(key_string.encode()).hexdigest()
            return f"{self.prefix}hash:{key_hash}"
        return f"{self.prefix}{key_string}"

    def _exam_scope(self, exam_id: str) -> str:
        return self._make_key(["exam", exam_id])

    def _refined_key(self, exam_id: str, user_id: str) -> str:
        user_part = str(user_id)
        if len(user_part) > 64:
            user_part = hashlib.md5(user_part.encode()).hexdigest()
        return f"{self._exam_scope(exam_id)}:refined:{user_part}"

    def _integrated_key(self, exam_id: str) -> str:
        return f"{self._exam_scope(exam_id)}:integrated"

    def _get_json(self, key: str, label: str) -> Optional[Dict[str, Any]]:
        try:
            cached_data = self.redis.get(key)
            if cached_data:
                logger.debug(f"Cache hit for {label}")
                return json.loads(cached_data)

            logger.debug(f"Cache miss for {label}")
            return None
        except (redis.RedisError, ValueError) as e:
            logger.error(f"Error getting {label} cache: {str(e)}")
            return None

    def _set_json(self, key: str, label: str, value: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        try:
            success = self.redis.setex(
                key,
                ttl or self.default_ttl,
                json.dumps(value, ensure_ascii=False)
            )
            if success:
                logger.debug(f"Cached {label}")
            return bool(success)
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Error setting {label} cache: {str(e)}")
            return False

    def get_refined_prediction(self, exam_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Saved refinement dict, None on miss or Redis failure"""
        return self._get_json(self._refined_key(exam_id, user_id),
                              f"refined prediction {exam_id}/{user_id}")

    def set_refined_prediction(self, exam_id: str, user_id: str, prediction: Dict[str, Any],
                               ttl: Optional[int] = None) -> bool:
        return self._set_json(self._refined_key(exam_id, user_id),
                              f"refined prediction {exam_id}/{user_id}", prediction, ttl)

    def get_integrated_prediction(self, exam_id: str) -> Optional[Dict[str, Any]]:
        """Integrated prediction last served for an exam"""
        return self._get_json(self._integrated_key(exam_id), f"integrated prediction {exam_id}")

    def set_integrated_prediction(self, exam_id: str, prediction: Dict[str, Any],
                                  ttl: Optional[int] = None) -> bool:
        return self._set_json(self._integrated_key(exam_id), f"integrated prediction {exam_id}",
                              prediction, ttl)

    def invalidate_exam(self, exam_id: str) -> int:
        """Drop every cached prediction of an exam, e.g. after new submissions"""
        try:
            pattern = _GLOB_SPECIAL.sub(r'\\\1', self._exam_scope(exam_id)) + ":*"
            keys = list(self.redis.scan_iter(match=pattern))
            if not keys:
                return 0
            deleted_count = self.redis.delete(*keys)
            logger.info(f"Invalidated {deleted_count} cached predictions for exam: {exam_id}")
            return deleted_count
        except redis.RedisError as e:
            logger.error(f"Error invalidating exam cache {exam_id}: {str(e)}")
            return 0


def create_redis_client() -> redis.Redis:
    """Connect to Redis using the service configuration"""
    redis_config = {
        "host": config.REDIS_HOST,
        "port": config.REDIS_PORT,
        "db": config.REDIS_DB,
        "password": config.REDIS_PASSWORD,
        "decode_responses": True,
        "socket_timeout": 5,
        "socket_connect_timeout": 5,
        "retry_on_timeout": True
    }
    if redis_config["password"] is None:
        del redis_config["password"]

    try:
        client = redis.Redis(**redis_config)
        client.ping()
        logger.info("Redis client connected successfully")
        return client
    except redis.RedisError as e:
        logger.error(f"Failed to connect to Redis: {str(e)}")
        raise CacheError(f"Redis connection failed: {str(e)}")


def create_prediction_cache() -> Optional[PredictionCache]:
    """PredictionCache when enabled and reachable, else None"""
    if not config.PREDICTION_CACHE_ENABLED:
        return None
    try:
        return PredictionCache(create_redis_client())
    except CacheError as e:
        logger.warning(f"Prediction cache disabled: {str(e)}")
        return None
