"""
Trust Score — Weights & Tunables

Immutable weight tables and the EngineConfig that carries every tunable
the pure engine needs. Nothing in app.trust reads environment or module
state at scoring time; callers build an EngineConfig (usually via
EngineConfig.from_settings()) and pass it in.

Category weights (sum to 1.0):
    Verification Quality    35%  — how good are the recent verifications?
    Profile Credibility     25%  — is the profile complete and established?
    Peer Endorsements       20%  — who vouches for this person?
    Verification History    20%  — how reliable is the long-run record?
"""
from __future__ import annotations
from dataclasses import dataclass, field, fields
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from app.trust.models import CATEGORY_TYPES


FACTOR_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "verification_quality": 0.35,
    "profile_credibility":  0.25,
    "peer_endorsements":    0.20,
    "verification_history": 0.20,
})

SUBFACTOR_WEIGHTS: Mapping[str, Mapping[str, float]] = MappingProxyType({
    "verification_quality": MappingProxyType({
        "evidence_quality":    0.35,
        "verification_method": 0.25,
        "confidence_level":    0.25,
        "completeness":        0.15,
    }),
    "profile_credibility": MappingProxyType({
        "profile_completeness": 0.30,
        "account_age":          0.20,
        "verification_history": 0.30,
        "social_connections":   0.20,
    }),
    "peer_endorsements": MappingProxyType({
        "endorsement_count":     0.30,
        "endorsement_quality":   0.30,
        "endorsement_diversity": 0.20,
        "endorsement_recency":   0.20,
    }),
    "verification_history": MappingProxyType({
        "total_verifications": 0.25,
        "success_rate":        0.35,
        "average_quality":     0.25,
        "consistency_score":   0.15,
    }),
})


class Aggregation(str, Enum):
    """How sub-metrics collapse into a category score. One per run, never mixed."""
    CATEGORY_MEAN = "category_mean"     # unweighted mean of the four sub-metrics
    WEIGHTED      = "weighted"          # SUBFACTOR_WEIGHTS inside each category


SOCIAL_METRIC_NAMES = ("none", "linked_presence")


def _weights_sum_to_one(weights: Mapping[str, float]) -> bool:
    return abs(sum(weights.values()) - 1.0) < 1e-9


@dataclass(frozen=True)
class EngineConfig:
    aggregation: Aggregation = Aggregation.CATEGORY_MEAN
    factor_weights: Mapping[str, float] = field(default_factory=lambda: FACTOR_WEIGHTS)
    subfactor_weights: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: SUBFACTOR_WEIGHTS
    )

    recent_verifications: int = 5       # window for verification quality
    recency_days: int = 30              # endorsement recency window
    endorsement_target: int = 5         # endorsements that count as 100
    verification_target: int = 10       # verifications that count as 100
    suggestion_target: int = 70         # sub-metrics below this get a suggestion
    history_limit: int = 100            # retained history entries per profile

    enforce_badge_criteria: bool = False
    social_metric: str = "none"

    def __post_init__(self):
        object.__setattr__(self, "aggregation", Aggregation(self.aggregation))
        if self.social_metric not in SOCIAL_METRIC_NAMES:
            raise ValueError(f"Unknown social metric: {self.social_metric!r}")
        if set(self.factor_weights) != set(CATEGORY_TYPES):
            raise ValueError(f"factor_weights must cover exactly {sorted(CATEGORY_TYPES)}")
        if not _weights_sum_to_one(self.factor_weights):
            raise ValueError("factor_weights must sum to 1.0")
        if set(self.subfactor_weights) != set(CATEGORY_TYPES):
            raise ValueError(f"subfactor_weights must cover exactly {sorted(CATEGORY_TYPES)}")
        for category, weights in self.subfactor_weights.items():
            expected = {f.name for f in fields(CATEGORY_TYPES[category])}
            if set(weights) != expected:
                raise ValueError(f"subfactor_weights[{category!r}] must cover exactly {sorted(expected)}")
            if not _weights_sum_to_one(weights):
                raise ValueError(f"subfactor_weights[{category!r}] must sum to 1.0")
        if self.recent_verifications < 1:
            raise ValueError("recent_verifications must be at least 1")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")

    @classmethod
    def from_settings(cls, settings=None) -> "EngineConfig":
        if settings is None:
            from app.config import settings
        return cls(
            aggregation=Aggregation(settings.TRUST_AGGREGATION),
            recent_verifications=settings.TRUST_RECENT_VERIFICATIONS,
            recency_days=settings.TRUST_RECENCY_DAYS,
            endorsement_target=settings.TRUST_ENDORSEMENT_TARGET,
            verification_target=settings.TRUST_VERIFICATION_TARGET,
            suggestion_target=settings.TRUST_SUGGESTION_TARGET,
            history_limit=settings.TRUST_HISTORY_LIMIT,
            enforce_badge_criteria=settings.TRUST_ENFORCE_BADGE_CRITERIA,
            social_metric=settings.TRUST_SOCIAL_METRIC,
        )


DEFAULT_CONFIG = EngineConfig()


def resolve_config(config: Optional[EngineConfig]) -> EngineConfig:
    return config if config is not None else DEFAULT_CONFIG
