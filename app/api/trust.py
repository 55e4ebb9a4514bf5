"""
Trust Score — HTTP API

Read and trigger endpoints over the trust score pipeline.

    GET  /v1/trust/health                        - Health check
    GET  /v1/trust/badges                        - Badge catalog
    GET  /v1/trust/badges/{badge_id}             - One badge definition
    GET  /v1/trust/{profile_id}                  - Latest trust score
    POST /v1/trust/{profile_id}/calculate        - Recalculate now
    GET  /v1/trust/{profile_id}/history          - Score history (newest first)
    GET  /v1/trust/{profile_id}/suggestions      - Improvement suggestions (by priority)
"""
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
import structlog

from app.compute.cache import ScoreCache
from app.compute.pipeline import (
    calculate_trust_score,
    get_cache,
    get_engine_config,
    get_latest_trust_score,
    get_store,
)
from app.compute.store import TrustDataStore
from app.trust.badges import TRUST_BADGES, get_badge
from app.trust.errors import ProfileNotFound
from app.trust.models import PRIORITY_ORDER, Priority, TrustScore
from app.trust.weights import EngineConfig

logger = structlog.get_logger()

SERVICE_VERSION = "1.0.0"


# =============================================
# RESPONSE MODELS
# =============================================

class AwardedBadgeResponse(BaseModel):
    id: str
    name: str
    level: int
    criteria: Dict[str, Any]
    awarded_at: str


class SuggestionResponse(BaseModel):
    factor: str
    current_value: int
    target_value: int
    improvement: str
    priority: Priority


class HistoryEntryResponse(BaseModel):
    timestamp: str
    score: int = Field(..., ge=0, le=100)
    factors: Dict[str, Dict[str, int]]
    reason: str


class TrustScoreResponse(BaseModel):
    id: str
    profile_id: str
    overall_score: int = Field(..., ge=0, le=100)
    factors: Dict[str, Dict[str, int]]
    badges: List[AwardedBadgeResponse]
    history: List[HistoryEntryResponse]
    suggestions: List[SuggestionResponse]
    updated_at: str
    counts: Dict[str, int] = {}


class HistoryResponse(BaseModel):
    profile_id: str
    entries: List[HistoryEntryResponse]
    total: int


class SuggestionsResponse(BaseModel):
    profile_id: str
    suggestions: List[SuggestionResponse]
    total: int


class BadgeLevelResponse(BaseModel):
    level: int
    min_score: int
    criteria: Dict[str, Any]
    benefits: List[str]


class BadgeDefinitionResponse(BaseModel):
    id: str
    name: str
    description: str
    levels: List[BadgeLevelResponse]
    icon: str
    color: str


def _to_response(score: TrustScore) -> TrustScoreResponse:
    return TrustScoreResponse(**score.to_dict())


async def _require_score(profile_id: str, store: TrustDataStore, cache: ScoreCache) -> TrustScore:
    score = await get_latest_trust_score(profile_id, store=store, cache=cache)
    if score is None:
        raise HTTPException(
            status_code=404,
            detail=f"No trust score for profile {profile_id}. POST /v1/trust/{profile_id}/calculate first.",
        )
    return score


# =============================================
# TRUST API ROUTES
# =============================================

trust_router = APIRouter(prefix="/v1/trust", tags=["trust"])


@trust_router.get("/health")
async def trust_health():
    """Health check for the Trust API."""
    return {
        "status": "healthy",
        "service": "trust-score-api",
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@trust_router.get("/badges", response_model=List[BadgeDefinitionResponse])
async def badge_catalog():
    """The static badge catalog: every badge, its levels and their thresholds."""
    return [badge.to_dict() for badge in TRUST_BADGES]


@trust_router.get("/badges/{badge_id}", response_model=BadgeDefinitionResponse)
async def badge_detail(badge_id: str):
    badge = get_badge(badge_id)
    if badge is None:
        raise HTTPException(status_code=404, detail=f"Unknown badge: {badge_id}")
    return badge.to_dict()



@trust_router.get("/{profile_id}", response_model=TrustScoreResponse)
async def read_trust_score(
    profile_id: str,
    store: TrustDataStore = Depends(get_store),
    cache: ScoreCache = Depends(get_cache),
):
    score = await _require_score(profile_id, store, cache)
    return _to_response(score)


@trust_router.post("/{profile_id}/calculate", response_model=TrustScoreResponse)
async def recalculate_trust_score(
    profile_id: str,
    store: TrustDataStore = Depends(get_store),
    cache: ScoreCache = Depends(get_cache),
    config: EngineConfig = Depends(get_engine_config),
):
    """
    Recalculate the trust score from the profile's current records.
    The score is returned even if it could not be persisted.
    """
    try:
        score = await calculate_trust_score(profile_id, store=store, cache=cache, config=config)
    except ProfileNotFound:
        raise HTTPException(status_code=404, detail=f"Profile not found: {profile_id}")

    logger.info("trust_score_requested", profile_id=profile_id, score=score.overall_score)
    return _to_response(score)


@trust_router.get("/{profile_id}/history", response_model=HistoryResponse)
async def trust_score_history(
    profile_id: str,
    limit: int = Query(default=30, ge=1, le=500),
    store: TrustDataStore = Depends(get_store),
    cache: ScoreCache = Depends(get_cache),
):
    score = await _require_score(profile_id, store, cache)
    entries = list(reversed(score.history))
    return HistoryResponse(
        profile_id=profile_id,
        entries=[h.to_dict() for h in entries[:limit]],
        total=len(entries),
    )


@trust_router.get("/{profile_id}/suggestions", response_model=SuggestionsResponse)
async def trust_score_suggestions(
    profile_id: str,
    priority: Optional[Priority] = Query(default=None),
    store: TrustDataStore = Depends(get_store),
    cache: ScoreCache = Depends(get_cache),
):
    score = await _require_score(profile_id, store, cache)
    suggestions = [s for s in score.suggestions if priority is None or s.priority == priority]
    suggestions.sort(key=lambda s: PRIORITY_ORDER[s.priority])
    return SuggestionsResponse(
        profile_id=profile_id,
        suggestions=[s.to_dict() for s in suggestions],
        total=len(suggestions),
    )
