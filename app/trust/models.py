"""
Trust Score — Data Model

Input records (what the stores hand us) and the computed artifact
(what we hand back). Input records are forgiving: missing or malformed
numeric fields become 0, unparseable timestamps become None.
Output records are strict and serialise to plain dicts for the API,
the cache and the graph store.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


# ── Enums ─────────────────────────────────────────

class VerificationStatus(str, Enum):
    PENDING     = "pending"
    IN_PROGRESS = "in_progress"
    VERIFIED    = "verified"
    REJECTED    = "rejected"
    COMPLETED   = "completed"
    CANCELLED   = "cancelled"


class Priority(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


# ── Coercion helpers ──────────────────────────────

def to_number(value: Any) -> float:
    """Finite numeric field or 0. Booleans are not numbers here."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except (OverflowError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string or datetime → aware UTC datetime. None if unusable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


# ── Input records ─────────────────────────────────

@dataclass
class Profile:
    """The subject being scored. Only the fields the engine reads."""
    id: str
    created_at: Optional[datetime] = None
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None

    # Linked presence (used by the linked_presence social metric)
    linkedin: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            id=str(data.get("id", "")),
            created_at=parse_timestamp(data.get("created_at")),
            name=_text(data.get("name") or data.get("full_name")),
            email=_text(data.get("email")),
            bio=_text(data.get("bio")),
            avatar_url=_text(data.get("avatar_url")),
            linkedin=_text(data.get("linkedin")),
            website=_text(data.get("website")),
            phone=_text(data.get("phone")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": format_timestamp(self.created_at),
            "name": self.name,
            "email": self.email,
            "bio": self.bio,
            "avatar_url": self.avatar_url,
            "linkedin": self.linkedin,
            "website": self.website,
            "phone": self.phone,
        }


@dataclass
class VerificationRecord:
    """
    One verification of the profile. Sub-scores are 0-100 as recorded by
    the verifier; absent sub-scores count as 0.
    """
    status: str = VerificationStatus.PENDING.value
    created_at: Optional[datetime] = None
    id: str = ""
    method: str = ""                    # "email", "phone", "government_id", ...
    quality_score: float = 0.0
    evidence_quality: float = 0.0
    method_quality: float = 0.0
    confidence_level: float = 0.0
    completeness: float = 0.0

    @property
    def is_verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationRecord":
        status = data.get("status") or VerificationStatus.PENDING.value
        if isinstance(status, Enum):
            status = status.value
        return cls(
            status=str(status),
            created_at=parse_timestamp(data.get("created_at")),
            id=str(data.get("id") or ""),
            method=str(data.get("method") or data.get("verification_method") or ""),
            quality_score=to_number(data.get("quality_score")),
            evidence_quality=to_number(data.get("evidence_quality")),
            method_quality=to_number(data.get("method_quality")),
            confidence_level=to_number(data.get("confidence_level")),
            completeness=to_number(data.get("completeness")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "method": self.method,
            "created_at": format_timestamp(self.created_at),
            "quality_score": self.quality_score,
            "evidence_quality": self.evidence_quality,
            "method_quality": self.method_quality,
            "confidence_level": self.confidence_level,
            "completeness": self.completeness,
        }


@dataclass
class EndorsementRecord:
    endorser_id: str = ""
    quality_score: float = 0.0
    created_at: Optional[datetime] = None
    id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EndorsementRecord":
        return cls(
            endorser_id=str(data.get("endorser_id") or ""),
            quality_score=to_number(data.get("quality_score")),
            created_at=parse_timestamp(data.get("created_at")),
            id=str(data.get("id") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "endorser_id": self.endorser_id,
            "quality_score": self.quality_score,
            "created_at": format_timestamp(self.created_at),
        }


# ── Factor categories ─────────────────────────────

class _Category:
    """Shared behaviour for the four sub-metric groups."""

    def as_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def mean(self) -> float:
        values = list(self.as_dict().values())
        return sum(values) / len(values)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**{f.name: int(to_number(data.get(f.name))) for f in fields(cls)})


@dataclass
class VerificationQuality(_Category):
    evidence_quality: int = 0
    verification_method: int = 0
    confidence_level: int = 0
    completeness: int = 0


@dataclass
class ProfileCredibility(_Category):
    profile_completeness: int = 0
    account_age: int = 0
    verification_history: int = 0
    social_connections: int = 0


@dataclass
class PeerEndorsements(_Category):
    endorsement_count: int = 0
    endorsement_quality: int = 0
    endorsement_diversity: int = 0
    endorsement_recency: int = 0


@dataclass
class VerificationHistory(_Category):
    total_verifications: int = 0
    success_rate: int = 0
    average_quality: int = 0
    consistency_score: int = 0


CATEGORY_TYPES = {
    "verification_quality": VerificationQuality,
    "profile_credibility": ProfileCredibility,
    "peer_endorsements": PeerEndorsements,
    "verification_history": VerificationHistory,
}


@dataclass
class TrustScoreFactors:
    """Four categories of sub-metrics, each on a 0-100 scale."""
    verification_quality: VerificationQuality = field(default_factory=VerificationQuality)
    profile_credibility: ProfileCredibility = field(default_factory=ProfileCredibility)
    peer_endorsements: PeerEndorsements = field(default_factory=PeerEndorsements)
    verification_history: VerificationHistory = field(default_factory=VerificationHistory)

    def categories(self) -> Iterator[Tuple[str, Dict[str, int]]]:
        for name in CATEGORY_TYPES:
            yield name, getattr(self, name).as_dict()

    def get(self, path: str) -> int:
        """Look up a sub-metric by its dotted ``category.subfactor`` path."""
        category, _, subfactor = path.partition(".")
        if category not in CATEGORY_TYPES:
            raise KeyError(path)
        values = getattr(self, category).as_dict()
        if subfactor not in values:
            raise KeyError(path)
        return values[subfactor]

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return dict(self.categories())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TrustScoreFactors":
        data = data or {}
        return cls(**{
            name: kind.from_dict(data.get(name) or {})
            for name, kind in CATEGORY_TYPES.items()
        })


# ── Output records ────────────────────────────────

@dataclass
class AwardedBadge:
    id: str
    name: str
    level: int
    criteria: Dict[str, Any]
    awarded_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "criteria": dict(self.criteria),
            "awarded_at": format_timestamp(self.awarded_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AwardedBadge":
        return cls(
            id=data["id"],
            name=data["name"],
            level=int(data["level"]),
            criteria=dict(data.get("criteria") or {}),
            awarded_at=parse_timestamp(data.get("awarded_at")) or utcnow(),
        )


@dataclass
class HistoryEntry:
    timestamp: datetime
    score: int
    factors: TrustScoreFactors
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "score": self.score,
            "factors": self.factors.to_dict(),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            timestamp=parse_timestamp(data.get("timestamp")) or utcnow(),
            score=int(to_number(data.get("score"))),
            factors=TrustScoreFactors.from_dict(data.get("factors")),
            reason=str(data.get("reason") or ""),
        )


@dataclass
class Suggestion:
    factor: str             # "category.subfactor"
    current_value: int
    target_value: int
    improvement: str
    priority: Priority

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "current_value": self.current_value,
            "target_value": self.target_value,
            "improvement": self.improvement,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Suggestion":
        return cls(
            factor=data["factor"],
            current_value=int(to_number(data.get("current_value"))),
            target_value=int(to_number(data.get("target_value"))),
            improvement=str(data.get("improvement") or ""),
            priority=Priority(data.get("priority", Priority.LOW.value)),
        )


@dataclass
class TrustScore:
    """One live instance per profile, overwritten on every computation."""
    id: str
    profile_id: str
    overall_score: int
    factors: TrustScoreFactors
    badges: List[AwardedBadge] = field(default_factory=list)
    history: List[HistoryEntry] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    updated_at: datetime = field(default_factory=utcnow)

    # Raw counts behind the normalised count sub-metrics
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "profile_id": self.profile_id,
            "overall_score": self.overall_score,
            "factors": self.factors.to_dict(),
            "badges": [b.to_dict() for b in self.badges],
            "history": [h.to_dict() for h in self.history],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "updated_at": format_timestamp(self.updated_at),
            "counts": dict(self.counts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustScore":
        return cls(
            id=str(data["id"]),
            profile_id=str(data["profile_id"]),
            overall_score=int(to_number(data.get("overall_score"))),
            factors=TrustScoreFactors.from_dict(data.get("factors")),
            badges=[AwardedBadge.from_dict(b) for b in data.get("badges") or []],
            history=[HistoryEntry.from_dict(h) for h in data.get("history") or []],
            suggestions=[Suggestion.from_dict(s) for s in data.get("suggestions") or []],
            updated_at=parse_timestamp(data.get("updated_at")) or utcnow(),
            counts={k: int(to_number(v)) for k, v in (data.get("counts") or {}).items()},
        )
