"""
Trust Score — Worker Settings

arq worker for trust score background work:
    1. recalculate_trust_score job — enqueued when a profile's
       verifications or endorsements change
    2. refresh_trust_scores cron — re-scores stale profiles hourly

Start with:
    arq app.workers.worker_settings.WorkerSettings
"""
from arq import create_pool, cron
from arq.connections import RedisSettings
import structlog

from app.compute.pipeline import calculate_trust_score, refresh_stale_scores
from app.config import settings
from app.trust.engine import DEFAULT_REASON
from app.trust.errors import ProfileNotFound

logger = structlog.get_logger()

REDIS_SETTINGS = RedisSettings.from_dsn(settings.REDIS_URL)


async def queue_recalculation(profile_id: str, reason: str = DEFAULT_REASON):
    """Queue a recalculation job for one profile."""
    redis_pool = await create_pool(REDIS_SETTINGS)
    await redis_pool.enqueue_job("recalculate_trust_score", profile_id, reason)


async def recalculate_trust_score(ctx, profile_id: str, reason: str = DEFAULT_REASON):
    """arq job: recompute one profile's trust score."""
    try:
        score = await calculate_trust_score(profile_id, reason=reason)
    except ProfileNotFound:
        logger.warning("trust_recalculation_skipped", profile_id=profile_id, reason="profile_not_found")
        return {"status": "skipped", "reason": "profile_not_found"}

    return {"status": "ok", "profile_id": profile_id, "score": score.overall_score}


async def refresh_trust_scores(ctx):
    """arq cron: recompute scores whose last computation is older than the refresh age."""
    refreshed = await refresh_stale_scores()
    return {"status": "ok", "refreshed": refreshed}


class WorkerSettings:
    """arq worker configuration."""

    functions = [
        recalculate_trust_score,
    ]

    cron_jobs = [
        cron(
            refresh_trust_scores,
            minute=0,        # hourly
            unique=True,     # Prevent duplicate runs
        ),
    ]

    redis_settings = REDIS_SETTINGS
    max_jobs = 10
    job_timeout = 300  # 5 minute timeout per job
