"""
Trust Score — Store Contract

The pipeline talks to storage only through TrustDataStore:

    get_profile(profile_id)            → Profile | None
    get_verifications(profile_id)      → [VerificationRecord]  (oldest first)
    get_endorsements(endorsed_id)      → [EndorsementRecord]
    get_trust_score(profile_id)        → TrustScore | None     (history oldest first)
    upsert_trust_score(score, limit)   → None, raises PersistenceError
                                         (appends the newest history entry)
    list_stale_profile_ids(before, n)  → [profile_id]

Neo4jTrustStore (app.compute.persistence) is the production store.
InMemoryTrustStore backs tests and local development.
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from app.trust.errors import PersistenceError
from app.trust.models import EndorsementRecord, Profile, TrustScore, VerificationRecord

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TrustDataStore(ABC):

    @abstractmethod
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    def get_verifications(self, profile_id: str) -> List[VerificationRecord]:
        ...

    @abstractmethod
    def get_endorsements(self, endorsed_id: str) -> List[EndorsementRecord]:
        ...

    @abstractmethod
    def get_trust_score(self, profile_id: str) -> Optional[TrustScore]:
        ...

    @abstractmethod
    @abstractmethod
    def upsert_trust_score(self, score: TrustScore, history_limit: int) -> None:
        """
        Overwrite the live score and append its newest history entry to the
        stored history, so two overlapping runs both keep their entry.
        """

    @abstractmethod
    def list_stale_profile_ids(self, updated_before: datetime, limit: int) -> List[str]:
        ...

    def close(self):
        pass


class InMemoryTrustStore(TrustDataStore):
    """Dict-backed store. Thread-safe, since the pipeline reads from worker threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._profiles: Dict[str, Profile] = {}
        self._verifications: Dict[str, List[VerificationRecord]] = {}
        self._endorsements: Dict[str, List[EndorsementRecord]] = {}
        self._scores: Dict[str, Dict[str, Any]] = {}
        self.fail_writes = False

    # ── seeding ──

    def add_profile(self, profile: Union[Profile, Dict[str, Any]]) -> Profile:
        if isinstance(profile, dict):
            profile = Profile.from_dict(profile)
        with self._lock:
            self._profiles[profile.id] = profile
        return profile

    def add_verification(
        self,
        profile_id: str,
        verification: Union[VerificationRecord, Dict[str, Any]],
    ) -> VerificationRecord:
        if isinstance(verification, dict):
            verification = VerificationRecord.from_dict(verification)
        with self._lock:
            self._verifications.setdefault(profile_id, []).append(verification)
        return verification

    def add_endorsement(
        self,
        endorsed_id: str,
        endorsement: Union[EndorsementRecord, Dict[str, Any]],
    ) -> EndorsementRecord:
        if isinstance(endorsement, dict):
            endorsement = EndorsementRecord.from_dict(endorsement)
        with self._lock:
            self._endorsements.setdefault(endorsed_id, []).append(endorsement)
        return endorsement

    # ── reads ──

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._lock:
            return self._profiles.get(profile_id)

    def get_verifications(self, profile_id: str) -> List[VerificationRecord]:
        with self._lock:
            records = list(self._verifications.get(profile_id, []))
        return sorted(records, key=lambda v: v.created_at or _EPOCH)

    def get_endorsements(self, endorsed_id: str) -> List[EndorsementRecord]:
        with self._lock:
            return list(self._endorsements.get(endorsed_id, []))

    def get_trust_score(self, profile_id: str) -> Optional[TrustScore]:
        with self._lock:
            stored = self._scores.get(profile_id)
        return TrustScore.from_dict(stored) if stored else None

    def list_stale_profile_ids(self, updated_before: datetime, limit: int) -> List[str]:
        with self._lock:
            candidates = []
            for profile_id in self._profiles:
                stored = self._scores.get(profile_id)
                updated = TrustScore.from_dict(stored).updated_at if stored else _EPOCH
                if updated < updated_before:
                    candidates.append((updated, profile_id))
        candidates.sort()
        return [profile_id for _, profile_id in candidates[:limit]]

    # ── writes ──

    def upsert_trust_score(self, score: TrustScore, history_limit: int) -> None:
        if self.fail_writes:
            raise PersistenceError(f"write rejected for {score.profile_id}")
        data = score.to_dict()
        with self._lock:
            stored = self._scores.get(score.profile_id)
            history = list(stored["history"]) if stored else []
            history.extend(data["history"][-1:])
            data["history"] = history[-history_limit:]
            self._scores[score.profile_id] = data
