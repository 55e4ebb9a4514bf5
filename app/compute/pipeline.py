"""
Trust Score — Compute Pipeline

Every trust score computation flows through this pipeline:

    Lock → [Read profile | verifications | endorsements | previous score] → Score → Persist → Cache

The pipeline handles:
    - Best-effort per-profile locking (one wait and retry, then proceed)
    - Concurrent reads (the four reads are independent)
    - Scoring via the pure engine (app.trust.engine)
    - Best-effort persistence: a failed write is logged, the score is still returned
    - Cache refresh for the read endpoints

Dependencies: cache and store are injectable; the defaults are the
Neo4j store and the Redis cache, created on first use.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional

import structlog

from app.compute.cache import ScoreCache
from app.compute.persistence import Neo4jTrustStore
from app.compute.store import TrustDataStore
from app.config import settings
from app.trust.engine import DEFAULT_REASON, compute_trust_score
from app.trust.errors import ProfileNotFound
from app.trust.models import TrustScore, utcnow
from app.trust.weights import EngineConfig

logger = structlog.get_logger()

LOCK_WAIT_SECONDS = 1.5
REFRESH_REASON = "Scheduled refresh"

# Singleton instances (initialized on first use)
_store: Optional[TrustDataStore] = None
_cache: Optional[ScoreCache] = None
_config: Optional[EngineConfig] = None


def get_store() -> TrustDataStore:
    global _store
    if _store is None:
        _store = Neo4jTrustStore()
    return _store


def get_cache() -> ScoreCache:
    global _cache
    if _cache is None:
        _cache = ScoreCache()
    return _cache


def get_engine_config() -> EngineConfig:
    global _config
    if _config is None:
        _config = EngineConfig.from_settings(settings)
    return _config


# =============================================
# THE PIPELINE
# =============================================

async def calculate_trust_score(
    profile_id: str,
    store: Optional[TrustDataStore] = None,
    cache: Optional[ScoreCache] = None,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
    reason: str = DEFAULT_REASON,
) -> TrustScore:
    """
    Compute, persist and return the trust score for one profile.

    Raises ProfileNotFound if the profile does not exist. Read errors
    propagate; write errors do not.
    """
    store = store or get_store()
    cache = cache or get_cache()
    config = config or get_engine_config()
    now = now or utcnow()

    locked = cache.acquire_lock(profile_id)
    if not locked:
        # Another run is in flight; give it a head start, then try once more
        logger.debug("trust_score_lock_busy", profile_id=profile_id)
        await asyncio.sleep(LOCK_WAIT_SECONDS)
        locked = cache.acquire_lock(profile_id)
        if not locked:
            # Still held (or stale until LOCK_TTL); compute anyway, history is append-only
            logger.warning("trust_score_lock_wait_exceeded", profile_id=profile_id)

    try:
        profile, verifications, endorsements, previous = await asyncio.gather(
            asyncio.to_thread(store.get_profile, profile_id),
            asyncio.to_thread(store.get_verifications, profile_id),
            asyncio.to_thread(store.get_endorsements, profile_id),
            asyncio.to_thread(store.get_trust_score, profile_id),
        )

        if profile is None:
            raise ProfileNotFound(profile_id)

        trust_score = compute_trust_score(
            profile,
            verifications,
            endorsements,
            config=config,
            now=now,
            previous_history=previous.history if previous else (),
            reason=reason,
        )

        logger.info(
            "trust_score_calculated",
            profile_id=profile_id,
            score=trust_score.overall_score,
            badges=[b.id for b in trust_score.badges],
            suggestions=len(trust_score.suggestions),
            verifications=len(verifications),
            endorsements=len(endorsements),
        )

        try:
            await asyncio.to_thread(store.upsert_trust_score, trust_score, config.history_limit)
        except Exception as e:
            logger.error("trust_score_persist_failed", profile_id=profile_id, error=str(e))

        cache.set(profile_id, trust_score.to_dict())
        return trust_score

    finally:
        if locked:
            cache.release_lock(profile_id)


async def get_latest_trust_score(
    profile_id: str,
    store: Optional[TrustDataStore] = None,
    cache: Optional[ScoreCache] = None,
) -> Optional[TrustScore]:
    """Cache first, then the store. None if the profile was never scored."""
    store = store or get_store()
    cache = cache or get_cache()

    cached = cache.get(profile_id)
    if cached:
        return TrustScore.from_dict(cached)

    stored = await asyncio.to_thread(store.get_trust_score, profile_id)
    if stored is not None:
        cache.set(profile_id, stored.to_dict())
    return stored


async def refresh_stale_scores(
    store: Optional[TrustDataStore] = None,
    cache: Optional[ScoreCache] = None,
    config: Optional[EngineConfig] = None,
    max_age: Optional[timedelta] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Recalculate scores older than max_age. Account age and endorsement
    recency drift with time, so a score goes stale without any new records.
    Returns how many profiles were refreshed.
    """
    store = store or get_store()
    now = now or utcnow()
    max_age = max_age or timedelta(hours=settings.TRUST_REFRESH_MAX_AGE_HOURS)
    limit = limit or settings.TRUST_REFRESH_BATCH

    profile_ids = await asyncio.to_thread(store.list_stale_profile_ids, now - max_age, limit)
    refreshed = 0

    for profile_id in profile_ids:
        try:
            await calculate_trust_score(
                profile_id,
                store=store,
                cache=cache,
                config=config,
                now=now,
                reason=REFRESH_REASON,
            )
            refreshed += 1
        except Exception as e:
            logger.error("trust_score_refresh_failed", profile_id=profile_id, error=str(e))

    logger.info("trust_scores_refreshed", candidates=len(profile_ids), refreshed=refreshed)
    return refreshed


def shutdown():
    """Close singleton connections."""
    global _store, _cache
    if _cache is not None:
        _cache.close()
        _cache = None
    if _store is not None:
        _store.close()
        _store = None
