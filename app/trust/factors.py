"""
Trust Score — Factor Calculators

Four independent, pure reductions from raw records to a category of
0-100 sub-metrics:

    Verification Quality   ← the most recent verifications
    Profile Credibility    ← profile fields + verification outcomes
    Peer Endorsements      ← endorsement records
    Verification History   ← every verification on record

Every calculator returns all-zero sub-metrics for empty input and never
raises on missing fields (they count as 0).
"""
from __future__ import annotations
import math
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol, Sequence

from app.trust.models import (
    EndorsementRecord,
    PeerEndorsements,
    Profile,
    ProfileCredibility,
    TrustScoreFactors,
    VerificationHistory,
    VerificationQuality,
    VerificationRecord,
    utcnow,
)
from app.trust.weights import EngineConfig, resolve_config

REQUIRED_PROFILE_FIELDS = ("name", "email", "bio", "avatar_url")
LINKED_PRESENCE_FIELDS = ("linkedin", "website", "phone")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (12.5 → 13, not 12)."""
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def bounded(value: int) -> int:
    """Clamp a sub-metric onto the 0-100 scale."""
    return max(0, min(value, 100))


def source_score(value: float) -> float:
    """One record's 0-100 score as averaged; non-finite values count as 0."""
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(value, 100.0))



def normalize_count(count: int, target: int) -> int:
    """Scale a raw count against the count that earns full marks, capped at 100."""
    if count <= 0:
        return 0
    if target <= 0:
        return 100
    return min(round_half_up(count / target * 100), 100)


# ── Social connections (extension point) ──────────

class SocialConnectionsMetric(Protocol):
    def __call__(self, profile: Profile) -> int: ...


def no_social_graph(profile: Profile) -> int:
    """No connection graph is available to score against."""
    return 0


def linked_presence(profile: Profile) -> int:
    """Share of linked external presence (LinkedIn, website, phone) on the profile."""
    linked = sum(1 for name in LINKED_PRESENCE_FIELDS if getattr(profile, name))
    return percentage(linked, len(LINKED_PRESENCE_FIELDS))


SOCIAL_METRICS: Dict[str, SocialConnectionsMetric] = {
    "none": no_social_graph,
    "linked_presence": linked_presence,
}


# ── Verification Quality ──────────────────────────

def _average_field(records: Sequence[VerificationRecord], name: str) -> int:
    if not records:
        return 0
    return round_half_up(mean([source_score(getattr(r, name)) for r in records]))


def calculate_verification_quality(
    verifications: Sequence[VerificationRecord],
    config: Optional[EngineConfig] = None,
) -> VerificationQuality:
    """
    Mean sub-scores over the most recent verifications.
    Input order is chronological (oldest first); no sorting happens here.
    """
    config = resolve_config(config)
    recent = list(verifications)[-config.recent_verifications:]

    return VerificationQuality(
        evidence_quality=_average_field(recent, "evidence_quality"),
        verification_method=_average_field(recent, "method_quality"),
        confidence_level=_average_field(recent, "confidence_level"),
        completeness=_average_field(recent, "completeness"),
    )


# ── Profile Credibility ───────────────────────────

def profile_completeness(profile: Profile) -> int:
    filled = sum(1 for name in REQUIRED_PROFILE_FIELDS if getattr(profile, name))
    return percentage(filled, len(REQUIRED_PROFILE_FIELDS))


def account_age_score(created_at: Optional[datetime], now: datetime) -> int:
    """Days since signup, saturating at 100."""
    if created_at is None:
        return 0
    age_days = (now - created_at) / timedelta(days=1)
    return max(0, min(round_half_up(age_days), 100))


def success_rate(verifications: Sequence[VerificationRecord]) -> int:
    verified = sum(1 for v in verifications if v.is_verified)
    return percentage(verified, len(verifications))


def calculate_profile_credibility(
    profile: Profile,
    verifications: Sequence[VerificationRecord],
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> ProfileCredibility:
    config = resolve_config(config)
    now = now or utcnow()
    social_metric = SOCIAL_METRICS[config.social_metric]

    return ProfileCredibility(
        profile_completeness=profile_completeness(profile),
        account_age=account_age_score(profile.created_at, now),
        verification_history=success_rate(verifications),
        social_connections=bounded(int(social_metric(profile))),
    )


# ── Peer Endorsements ─────────────────────────────

def calculate_peer_endorsements(
    endorsements: Sequence[EndorsementRecord],
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> PeerEndorsements:
    config = resolve_config(config)
    now = now or utcnow()
    total = len(endorsements)
    if not total:
        return PeerEndorsements()

    window = timedelta(days=config.recency_days)
    recent = sum(
        1 for e in endorsements
        if e.created_at is not None and now - e.created_at < window
    )
    distinct_endorsers = len({e.endorser_id for e in endorsements})

    return PeerEndorsements(
        endorsement_count=normalize_count(total, config.endorsement_target),
        endorsement_quality=round_half_up(mean([source_score(e.quality_score) for e in endorsements])),
        endorsement_diversity=percentage(distinct_endorsers, total),
        endorsement_recency=percentage(recent, total),
    )


# ── Verification History ──────────────────────────

def consistency_score(quality_scores: Sequence[float]) -> int:
    """100 for perfectly even quality; each unit of variance costs 10 points."""
    if not quality_scores:
        return 0
    quality_scores = [source_score(q) for q in quality_scores]
    average = mean(quality_scores)
    variance = mean([(q - average) ** 2 for q in quality_scores])
    return round_half_up(100 - min(variance * 10, 100))


def calculate_verification_history(
    verifications: Sequence[VerificationRecord],
    config: Optional[EngineConfig] = None,
) -> VerificationHistory:
    config = resolve_config(config)
    if not verifications:
        return VerificationHistory()

    qualities = [source_score(v.quality_score) for v in verifications]
    return VerificationHistory(
        total_verifications=normalize_count(len(verifications), config.verification_target),
        success_rate=success_rate(verifications),
        average_quality=round_half_up(mean(qualities)),
        consistency_score=consistency_score(qualities),
    )


def calculate_factors(
    profile: Profile,
    verifications: Sequence[VerificationRecord],
    endorsements: Sequence[EndorsementRecord],
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> TrustScoreFactors:
    config = resolve_config(config)
    now = now or utcnow()
    return TrustScoreFactors(
        verification_quality=calculate_verification_quality(verifications, config),
        profile_credibility=calculate_profile_credibility(profile, verifications, config, now),
        peer_endorsements=calculate_peer_endorsements(endorsements, config, now),
        verification_history=calculate_verification_history(verifications, config),
    )
