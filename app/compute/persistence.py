"""
Trust Score — Neo4j Store

Reads the records the engine scores and persists the computed trust score.

Schema:
    (:Profile {id, name, email, bio, avatar_url, linkedin, website, phone, created_at})
    (:Verification {id, profile_id, status, method, quality_score, evidence_quality,
                    method_quality, confidence_level, completeness, created_at})
    (:Endorsement {id, endorser_id, endorsed_id, quality_score, created_at})

    (:Profile)-[:HAS_TRUST_SCORE]->(:TrustScore {
        profile_id,        # one live node per profile
        score_id,          # unique per computation
        overall_score,     # 0-100
        factors, badges, suggestions, counts,   # JSON strings
        updated_at
    })
    (:Profile)-[:SCORE_HISTORY]->(:TrustScoreHistory {profile_id, timestamp, score, factors, reason})

History entries are separate nodes created one per computation, so two
computations for the same profile never overwrite each other's history.
Entries beyond the retention limit are removed oldest first.

Dependencies: neo4j >= 5.17.0
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from app.compute.store import TrustDataStore
from app.trust.engine import DEFAULT_REASON
from app.db.neo4j import get_session
from app.trust.errors import PersistenceError
from app.trust.models import (
    AwardedBadge,
    EndorsementRecord,
    HistoryEntry,
    Profile,
    Suggestion,
    TrustScore,
    TrustScoreFactors,
    VerificationRecord,
    format_timestamp,
    parse_timestamp,
    to_number,
    utcnow,
)

logger = structlog.get_logger()


def _native(node: Dict[str, Any]) -> Dict[str, Any]:
    """Neo4j temporal values → Python datetimes."""
    return {
        k: v.to_native() if hasattr(v, "to_native") else v
        for k, v in node.items()
    }


def _loads(raw: Any, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("trust_score_field_undecodable", value=str(raw)[:60])
        return default


class Neo4jTrustStore(TrustDataStore):
    """Production store over the trust graph."""

    # ── reads ──

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with get_session() as session:
            record = session.run("""
                MATCH (p:Profile {id: $profile_id})
                RETURN p {.*} AS profile
            """, profile_id=profile_id).single()
        if not record:
            return None
        return Profile.from_dict(_native(dict(record["profile"])))

    def get_verifications(self, profile_id: str) -> List[VerificationRecord]:
        with get_session() as session:
            result = session.run("""
                MATCH (v:Verification {profile_id: $profile_id})
                RETURN v {.*} AS verification
                ORDER BY v.created_at ASC
            """, profile_id=profile_id)
            return [VerificationRecord.from_dict(_native(dict(r["verification"]))) for r in result]

    def get_endorsements(self, endorsed_id: str) -> List[EndorsementRecord]:
        with get_session() as session:
            result = session.run("""
                MATCH (e:Endorsement {endorsed_id: $endorsed_id})
                RETURN e {.*} AS endorsement
                ORDER BY e.created_at ASC
            """, endorsed_id=endorsed_id)
            return [EndorsementRecord.from_dict(_native(dict(r["endorsement"]))) for r in result]

    def get_trust_score(self, profile_id: str) -> Optional[TrustScore]:
        with get_session() as session:
            record = session.run("""
                MATCH (p:Profile {id: $profile_id})-[:HAS_TRUST_SCORE]->(t:TrustScore)
                OPTIONAL MATCH (p)-[:SCORE_HISTORY]->(h:TrustScoreHistory)
                WITH t, h ORDER BY h.timestamp ASC
                RETURN t {.*} AS score, collect(h {.*}) AS history
            """, profile_id=profile_id).single()
        if not record or record["score"] is None:
            return None
        return self._to_trust_score(
            _native(dict(record["score"])),
            [_native(dict(h)) for h in record["history"]],
        )

    def list_stale_profile_ids(self, updated_before: datetime, limit: int) -> List[str]:
        with get_session() as session:
            result = session.run("""
                MATCH (p:Profile)
                OPTIONAL MATCH (p)-[:HAS_TRUST_SCORE]->(t:TrustScore)
                WITH p, t
                WHERE t IS NULL OR t.updated_at < datetime($updated_before)
                RETURN p.id AS profile_id
                ORDER BY coalesce(t.updated_at, datetime('1970-01-01T00:00:00Z')) ASC
                LIMIT $limit
            """, updated_before=format_timestamp(updated_before), limit=limit)
            return [r["profile_id"] for r in result]

    # ── writes ──

    def upsert_trust_score(self, score: TrustScore, history_limit: int) -> None:
        latest = score.history[-1] if score.history else HistoryEntry(
            timestamp=score.updated_at,
            score=score.overall_score,
            factors=score.factors,
            reason=DEFAULT_REASON,
        )

        try:
            with get_session() as session:
                with session.begin_transaction() as tx:
                    record = tx.run("""
                        MATCH (p:Profile {id: $profile_id})
                        MERGE (p)-[:HAS_TRUST_SCORE]->(t:TrustScore {profile_id: $profile_id})
                        SET t.score_id = $score_id,
                            t.overall_score = $overall_score,
                            t.factors = $factors,
                            t.badges = $badges,
                            t.suggestions = $suggestions,
                            t.counts = $counts,
                            t.updated_at = datetime($updated_at)
                        CREATE (p)-[:SCORE_HISTORY]->(:TrustScoreHistory {
                            profile_id: $profile_id,
                            timestamp: datetime($entry_timestamp),
                            score: $entry_score,
                            factors: $entry_factors,
                            reason: $entry_reason
                        })
                        RETURN t.score_id AS score_id
                    """,
                        profile_id=score.profile_id,
                        score_id=score.id,
                        overall_score=score.overall_score,
                        factors=json.dumps(score.factors.to_dict()),
                        badges=json.dumps([b.to_dict() for b in score.badges]),
                        suggestions=json.dumps([s.to_dict() for s in score.suggestions]),
                        counts=json.dumps(score.counts),
                        updated_at=format_timestamp(score.updated_at),
                        entry_timestamp=format_timestamp(latest.timestamp),
                        entry_score=latest.score,
                        entry_factors=json.dumps(latest.factors.to_dict()),
                        entry_reason=latest.reason,
                    ).single()

                    if record is None:
                        raise PersistenceError(f"Profile not found: {score.profile_id}")

                    tx.run("""
                        MATCH (:Profile {id: $profile_id})-[:SCORE_HISTORY]->(h:TrustScoreHistory)
                        WITH h ORDER BY h.timestamp DESC
                        SKIP $limit
                        DETACH DELETE h
                    """, profile_id=score.profile_id, limit=history_limit)
                    tx.commit()

        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(str(e)) from e

        logger.info("trust_score_persisted", profile_id=score.profile_id, score_id=score.id)

    # ── mapping ──

    @staticmethod
    def _to_trust_score(node: Dict[str, Any], history: List[Dict[str, Any]]) -> TrustScore:
        return TrustScore(
            id=str(node.get("score_id", "")),
            profile_id=str(node.get("profile_id", "")),
            overall_score=int(to_number(node.get("overall_score"))),
            factors=TrustScoreFactors.from_dict(_loads(node.get("factors"), {})),
            badges=[AwardedBadge.from_dict(b) for b in _loads(node.get("badges"), [])],
            history=[
                HistoryEntry(
                    timestamp=parse_timestamp(h.get("timestamp")) or utcnow(),
                    score=int(to_number(h.get("score"))),
                    factors=TrustScoreFactors.from_dict(_loads(h.get("factors"), {})),
                    reason=str(h.get("reason") or ""),
                )
                for h in history
            ],
            suggestions=[Suggestion.from_dict(s) for s in _loads(node.get("suggestions"), [])],
            updated_at=parse_timestamp(node.get("updated_at")) or utcnow(),
            counts=_loads(node.get("counts"), {}),
        )
