"""
Trust Score — Score Cache Layer

The latest trust score per profile is cached in Redis so read endpoints
don't hit the graph on every request. The cache is refreshed by every
computation, so a cached score is never older than the stored one.

Key Schema:
    trust:score:{profile_id}        → Full JSON trust score
    trust:score:locks:{profile_id}  → Lock held while a computation is in flight

Redis is optional at runtime: if it is unreachable the cache disables
itself and every call degrades to a miss / a granted lock.

Dependencies: redis >= 5.0.0
"""
import json
from typing import Any, Dict, Optional

import redis
import structlog

from app.config import settings

logger = structlog.get_logger()


def _score_key(profile_id: str) -> str:
    return f"trust:score:{profile_id}"


def _lock_key(profile_id: str) -> str:
    return f"trust:score:locks:{profile_id}"


class ScoreCache:
    """
    Redis cache for the latest trust score of each profile.

    Usage:
        cache = ScoreCache()  # connects to Redis from settings

        cached = cache.get(profile_id)
        if cached:
            return cached

        # ... compute score ...

        cache.set(profile_id, score.to_dict())
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl: Optional[int] = None,
        lock_ttl: Optional[int] = None,
        enabled: bool = True,
    ):
        self._url = redis_url or settings.REDIS_URL
        self._ttl = ttl or settings.CACHE_TTL_SCORE
        self._lock_ttl = lock_ttl or settings.LOCK_TTL
        self._pool = None
        self._client: Optional[redis.Redis] = None
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _connect(self) -> Optional[redis.Redis]:
        """Lazy connect — only opens connection when first used."""
        if not self._enabled:
            return None

        if self._client is None:
            try:
                self._pool = redis.ConnectionPool.from_url(
                    self._url,
                    max_connections=20,
                    decode_responses=True,
                    socket_connect_timeout=3,
                    socket_timeout=2,
                    retry_on_timeout=True,
                )
                self._client = redis.Redis(connection_pool=self._pool)
                self._client.ping()
                logger.info("score_cache_connected", url=self._url.split("@")[-1])
            except redis.RedisError as e:
                logger.warning("score_cache_unavailable", error=str(e))
                self._enabled = False
                self._client = None
        return self._client

    def get(self, profile_id: str) -> Optional[Dict[str, Any]]:
        """Cached score dict, or None on miss / Redis down."""
        client = self._connect()
        if not client:
            return None

        try:
            raw = client.get(_score_key(profile_id))
        except redis.RedisError as e:
            logger.debug("cache_get_error", error=str(e))
            return None

        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.debug("cache_entry_corrupt", profile_id=profile_id)
            return None

    def set(self, profile_id: str, score_data: Dict[str, Any]) -> bool:
        client = self._connect()
        if not client:
            return False

        try:
            client.setex(_score_key(profile_id), self._ttl, json.dumps(score_data, default=str))
            logger.debug("cache_set", profile_id=profile_id, ttl=self._ttl)
            return True
        except redis.RedisError as e:
            logger.debug("cache_set_error", error=str(e))
            return False

    def acquire_lock(self, profile_id: str) -> bool:
        """
        Prevents two computations for the same profile running at once.
        Granted when Redis is unavailable.
        """
        client = self._connect()
        if not client:
            return True

        try:
            acquired = client.set(_lock_key(profile_id), "1", nx=True, ex=self._lock_ttl)
            return bool(acquired)
        except redis.RedisError as e:
            logger.debug("cache_lock_error", error=str(e))
            return True

    def release_lock(self, profile_id: str):
        client = self._connect()
        if not client:
            return

        try:
            client.delete(_lock_key(profile_id))
        except redis.RedisError as e:
            logger.debug("cache_unlock_error", error=str(e))

    def close(self):
        """Shutdown cache connections."""
        if self._pool:
            self._pool.disconnect()
            logger.info("score_cache_disconnected")
