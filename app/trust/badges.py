"""
Trust Score — Badge Catalog & Evaluator

The catalog is static, code-defined data. Each badge has three ascending
levels; a level is earned when the overall score reaches its min_score.
The highest earned level is awarded; a badge with no earned level is
omitted entirely.

Per-level criteria travel with the award. They only gate the award when
EngineConfig.enforce_badge_criteria is on, in which case every criterion
on the level must pass its checker (unknown criteria fail closed).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import structlog

from app.trust.factors import round_half_up
from app.trust.models import AwardedBadge, TrustScoreFactors, VerificationRecord, utcnow
from app.trust.weights import EngineConfig, resolve_config

logger = structlog.get_logger()


# ── Catalog ───────────────────────────────────────

@dataclass(frozen=True)
class BadgeLevel:
    level: int
    min_score: int
    criteria: Mapping[str, Any]
    benefits: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "min_score": self.min_score,
            "criteria": {
                k: list(v) if isinstance(v, tuple) else v
                for k, v in self.criteria.items()
            },
            "benefits": list(self.benefits),
        }


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    levels: Tuple[BadgeLevel, ...]
    icon: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "levels": [lvl.to_dict() for lvl in self.levels],
            "icon": self.icon,
            "color": self.color,
        }


TRUST_BADGES: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        id="verified_identity",
        name="Verified Identity",
        description="Successfully verified identity through multiple methods",
        levels=(
            BadgeLevel(1, 60, {
                "verification_methods": ("email", "phone"),
                "profile_completeness": 70,
            }, ("Basic profile verification",)),
            BadgeLevel(2, 80, {
                "verification_methods": ("email", "phone", "government_id"),
                "profile_completeness": 90,
            }, ("Enhanced profile verification", "Priority support")),
            BadgeLevel(3, 95, {
                "verification_methods": ("email", "phone", "government_id", "professional"),
                "profile_completeness": 100,
            }, ("Premium verification", "Exclusive features", "Priority support")),
        ),
        icon="🛡️",
        color="blue",
    ),
    BadgeDefinition(
        id="trusted_verifier",
        name="Trusted Verifier",
        description="Demonstrated expertise in verification processes",
        levels=(
            BadgeLevel(1, 70, {"verification_count": 10, "success_rate": 80},
                       ("Basic verifier status",)),
            BadgeLevel(2, 85, {"verification_count": 50, "success_rate": 90},
                       ("Advanced verifier status", "Priority verifications")),
            BadgeLevel(3, 95, {"verification_count": 100, "success_rate": 95},
                       ("Expert verifier status", "Premium verifications",
                        "Mentorship opportunities")),
        ),
        icon="⭐",
        color="gold",
    ),
    BadgeDefinition(
        id="community_leader",
        name="Community Leader",
        description="Active and respected member of the community",
        levels=(
            BadgeLevel(1, 65, {"endorsement_count": 5, "activity_score": 70},
                       ("Basic community features",)),
            BadgeLevel(2, 80, {"endorsement_count": 20, "activity_score": 85},
                       ("Enhanced community features", "Community moderation")),
            BadgeLevel(3, 90, {"endorsement_count": 50, "activity_score": 95},
                       ("Premium community features", "Community leadership",
                        "Exclusive events")),
        ),
        icon="👑",
        color="purple",
    ),
)


def get_badge(badge_id: str) -> Optional[BadgeDefinition]:
    for badge in TRUST_BADGES:
        if badge.id == badge_id:
            return badge
    return None


# ── Criteria ──────────────────────────────────────

@dataclass(frozen=True)
class BadgeContext:
    """What a criterion checker may look at."""
    overall_score: int
    factors: TrustScoreFactors
    verification_count: int = 0
    endorsement_count: int = 0
    verification_methods: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        overall_score: int,
        factors: TrustScoreFactors,
        verifications: Sequence[VerificationRecord] = (),
        endorsement_count: int = 0,
    ) -> "BadgeContext":
        return cls(
            overall_score=overall_score,
            factors=factors,
            verification_count=len(verifications),
            endorsement_count=endorsement_count,
            verification_methods=frozenset(
                v.method for v in verifications if v.is_verified and v.method
            ),
        )


def activity_score(factors: TrustScoreFactors) -> int:
    """Tenure and fresh endorsements, averaged."""
    return round_half_up(
        (factors.profile_credibility.account_age
         + factors.peer_endorsements.endorsement_recency) / 2
    )


CriterionChecker = Callable[[BadgeContext, Any], bool]

CRITERIA_CHECKERS: Dict[str, CriterionChecker] = {
    "verification_methods": lambda ctx, required: set(required) <= ctx.verification_methods,
    "profile_completeness": lambda ctx, required: (
        ctx.factors.profile_credibility.profile_completeness >= required
    ),
    "verification_count": lambda ctx, required: ctx.verification_count >= required,
    "success_rate": lambda ctx, required: ctx.factors.verification_history.success_rate >= required,
    "endorsement_count": lambda ctx, required: ctx.endorsement_count >= required,
    "activity_score": lambda ctx, required: activity_score(ctx.factors) >= required,
}


def criteria_met(criteria: Mapping[str, Any], ctx: BadgeContext) -> bool:
    for name, required in criteria.items():
        checker = CRITERIA_CHECKERS.get(name)
        if checker is None:
            logger.debug("badge_criterion_unknown", criterion=name)
            return False
        if not checker(ctx, required):
            logger.debug("badge_criterion_not_met", criterion=name, required=required)
            return False
    return True


# ── Evaluator ─────────────────────────────────────

def highest_level(
    badge: BadgeDefinition,
    ctx: BadgeContext,
    enforce_criteria: bool = False,
) -> Optional[BadgeLevel]:
    earned = None
    for level in sorted(badge.levels, key=lambda lvl: lvl.level):
        if ctx.overall_score < level.min_score:
            continue
        if enforce_criteria and not criteria_met(level.criteria, ctx):
            continue
        earned = level
    return earned


def evaluate_badges(
    ctx: BadgeContext,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
    catalog: Sequence[BadgeDefinition] = TRUST_BADGES,
) -> List[AwardedBadge]:
    """Recompute the full badge set. awarded_at is stamped with this run's time."""
    config = resolve_config(config)
    now = now or utcnow()
    awarded = []

    for badge in catalog:
        level = highest_level(badge, ctx, config.enforce_badge_criteria)
        if level is None:
            continue
        awarded.append(AwardedBadge(
            id=badge.id,
            name=badge.name,
            level=level.level,
            criteria=level.to_dict()["criteria"],
            awarded_at=now,
        ))

    return awarded
