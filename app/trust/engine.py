"""
Trust Score — Scoring Engine

Pure, deterministic pipeline from a profile's records to its TrustScore:

    records ──► Factor Calculators ──► Aggregator ──► overall_score (0-100)
                                          │
                                          ├──► Badge Evaluator
                                          └──► Suggestion Generator

Same records + same `now` ⇒ same factors, overall_score, badges and
suggestions. Only the generated id and timestamps vary between runs.
Fetching and persisting live in app.compute.pipeline, not here.

Overall score:
    Σ category_score × FACTOR_WEIGHTS[category], rounded half-up.
    category_score is the plain mean of its four sub-metrics, or the
    SUBFACTOR_WEIGHTS-weighted mean when aggregation = "weighted".
"""
from __future__ import annotations
import uuid
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from app.trust.badges import BadgeContext, evaluate_badges
from app.trust.factors import calculate_factors, round_half_up
from app.trust.models import (
    EndorsementRecord,
    HistoryEntry,
    Priority,
    Profile,
    Suggestion,
    TrustScore,
    TrustScoreFactors,
    VerificationRecord,
    utcnow,
)
from app.trust.weights import Aggregation, EngineConfig, resolve_config

DEFAULT_REASON = "Score calculated"
GENERIC_IMPROVEMENT = "Work on improving this aspect"

IMPROVEMENT_TEXT: Dict[str, Dict[str, str]] = {
    "verification_quality": {
        "evidence_quality": "Improve the quality of evidence provided in verifications",
        "verification_method": "Use more reliable verification methods",
        "confidence_level": "Increase confidence in verification decisions",
        "completeness": "Provide more complete verification information",
    },
    "profile_credibility": {
        "profile_completeness": "Complete more profile information",
        "account_age": "Continue using the platform to build account history",
        "verification_history": "Complete more verifications successfully",
    },
    "peer_endorsements": {
        "endorsement_count": "Ask colleagues to endorse your experience",
        "endorsement_quality": "Seek endorsements from people who know your work well",
        "endorsement_diversity": "Gather endorsements from a wider range of people",
        "endorsement_recency": "Request fresh endorsements for recent work",
    },
    "verification_history": {
        "total_verifications": "Request verification for more of your timeline entries",
        "success_rate": "Submit verifications with evidence that can be confirmed",
        "average_quality": "Provide stronger evidence with each verification request",
        "consistency_score": "Keep the quality of your verifications consistent",
    },
}


# ── Aggregator ────────────────────────────────────

def category_score(
    category: str,
    values: Mapping[str, int],
    config: Optional[EngineConfig] = None,
) -> float:
    config = resolve_config(config)
    if not values:
        return 0.0
    if config.aggregation is Aggregation.WEIGHTED:
        weights = config.subfactor_weights[category]
        return sum(values[name] * weights[name] for name in weights)
    return sum(values.values()) / len(values)


def calculate_overall_score(
    factors: TrustScoreFactors,
    config: Optional[EngineConfig] = None,
) -> int:
    config = resolve_config(config)
    score = 0.0
    for category, values in factors.categories():
        score += category_score(category, values, config) * config.factor_weights[category]
    return max(0, min(round_half_up(score), 100))


# ── Suggestions ───────────────────────────────────

def priority_for(value: int) -> Priority:
    if value < 50:
        return Priority.HIGH
    if value < 60:
        return Priority.MEDIUM
    return Priority.LOW


def improvement_text(category: str, subfactor: str) -> str:
    return IMPROVEMENT_TEXT.get(category, {}).get(subfactor, GENERIC_IMPROVEMENT)


def generate_suggestions(
    factors: TrustScoreFactors,
    config: Optional[EngineConfig] = None,
) -> List[Suggestion]:
    """One suggestion per sub-metric under target, in category order. Not ranked."""
    config = resolve_config(config)
    target = config.suggestion_target
    suggestions = []

    for category, values in factors.categories():
        for subfactor, value in values.items():
            if value >= target:
                continue
            suggestions.append(Suggestion(
                factor=f"{category}.{subfactor}",
                current_value=value,
                target_value=target,
                improvement=improvement_text(category, subfactor),
                priority=priority_for(value),
            ))

    return suggestions


# ── Pipeline ──────────────────────────────────────

def append_history(
    history: Sequence[HistoryEntry],
    entry: HistoryEntry,
    limit: int,
) -> List[HistoryEntry]:
    """Oldest first; keeps the newest `limit` entries."""
    combined = list(history) + [entry]
    return combined[-limit:]


def compute_trust_score(
    profile: Profile,
    verifications: Sequence[VerificationRecord],
    endorsements: Sequence[EndorsementRecord],
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
    previous_history: Sequence[HistoryEntry] = (),
    reason: str = DEFAULT_REASON,
) -> TrustScore:
    """
    Score one profile from its records.

    Verifications must be in chronological order (oldest first) so the
    verification-quality window sees the most recent ones.
    """
    config = resolve_config(config)
    now = now or utcnow()

    factors = calculate_factors(profile, verifications, endorsements, config, now)
    overall = calculate_overall_score(factors, config)

    ctx = BadgeContext.build(
        overall_score=overall,
        factors=factors,
        verifications=verifications,
        endorsement_count=len(endorsements),
    )
    badges = evaluate_badges(ctx, config, now)
    suggestions = generate_suggestions(factors, config)

    entry = HistoryEntry(timestamp=now, score=overall, factors=factors, reason=reason)

    return TrustScore(
        id=str(uuid.uuid4()),
        profile_id=profile.id,
        overall_score=overall,
        factors=factors,
        badges=badges,
        history=append_history(previous_history, entry, config.history_limit),
        suggestions=suggestions,
        updated_at=now,
        counts={
            "verifications": len(verifications),
            "endorsements": len(endorsements),
        },
    )
