"""Scoring engine: aggregation, badges, suggestions and the pure pipeline."""

import pytest

from conftest import NOW, complete_profile, seed_established_profile

from app.compute.store import InMemoryTrustStore
from app.trust.badges import TRUST_BADGES, BadgeContext, activity_score, evaluate_badges, get_badge
from app.trust.engine import (
    GENERIC_IMPROVEMENT,
    append_history,
    calculate_overall_score,
    compute_trust_score,
    generate_suggestions,
    priority_for,
)
from app.trust.models import (
    HistoryEntry,
    PeerEndorsements,
    Priority,
    Profile,
    TrustScore,
    TrustScoreFactors,
    VerificationQuality,
)
from app.trust.weights import SUBFACTOR_WEIGHTS, Aggregation, EngineConfig


def _records(store: InMemoryTrustStore, profile_id: str = "p-1"):
    return (
        store.get_profile(profile_id),
        store.get_verifications(profile_id),
        store.get_endorsements(profile_id),
    )


def _established(config=None, **kwargs):
    store = InMemoryTrustStore()
    seed_established_profile(store)
    return compute_trust_score(*_records(store), config=config, now=NOW, **kwargs)


def _uniform_factors(value: int) -> TrustScoreFactors:
    return TrustScoreFactors.from_dict({
        category: {name: value for name in values}
        for category, values in TrustScoreFactors().categories()
    })


SUB_METRICS = [
    f"{category}.{name}"
    for category, values in TrustScoreFactors().categories()
    for name in values
]


class TestAggregator:

    def test_all_zero_is_zero(self):
        assert calculate_overall_score(TrustScoreFactors()) == 0

    def test_all_hundred_is_hundred(self):
        assert calculate_overall_score(_uniform_factors(100)) == 100

    def test_category_mean_uses_factor_weights(self):
        factors = TrustScoreFactors(verification_quality=VerificationQuality(evidence_quality=100))
        # 25 × 0.35 = 8.75
        assert calculate_overall_score(factors) == 9

    def test_weighted_mode_uses_subfactor_weights(self):
        factors = TrustScoreFactors(verification_quality=VerificationQuality(evidence_quality=100))
        config = EngineConfig(aggregation=Aggregation.WEIGHTED)
        # 35 × 0.35 = 12.25
        assert calculate_overall_score(factors, config) == 12

    def test_modes_agree_on_uniform_factors(self):
        factors = _uniform_factors(64)
        weighted = EngineConfig(aggregation="weighted")
        assert calculate_overall_score(factors) == calculate_overall_score(factors, weighted) == 64

    def test_bad_weights_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(factor_weights={"verification_quality": 0.5})

    def test_weights_missing_a_category_rejected(self):
        with pytest.raises(ValueError, match="factor_weights must cover"):
            EngineConfig(factor_weights={"verification_quality": 1.0})

    def test_subfactor_weights_missing_a_name_rejected(self):
        subfactors = {category: dict(weights) for category, weights in SUBFACTOR_WEIGHTS.items()}
        subfactors["peer_endorsements"] = {"endorsement_count": 0.5, "endorsement_quality": 0.5}
        with pytest.raises(ValueError, match="peer_endorsements"):
            EngineConfig(subfactor_weights=subfactors)

    def test_subfactor_weights_missing_a_category_rejected(self):
        subfactors = {category: dict(weights) for category, weights in SUBFACTOR_WEIGHTS.items()}
        del subfactors["verification_history"]
        with pytest.raises(ValueError, match="subfactor_weights must cover"):
            EngineConfig(subfactor_weights=subfactors)

    @pytest.mark.parametrize("aggregation", list(Aggregation))
    @pytest.mark.parametrize("path", SUB_METRICS)
    def test_raising_any_sub_metric_never_lowers_the_score(self, path, aggregation):
        config = EngineConfig(aggregation=aggregation)
        category, subfactor = path.split(".")
        base = _uniform_factors(50)
        previous = calculate_overall_score(base, config)
        for value in (51, 70, 100):
            data = base.to_dict()
            data[category][subfactor] = value
            score = calculate_overall_score(TrustScoreFactors.from_dict(data), config)
            assert score >= previous
            previous = score
        assert previous > calculate_overall_score(base, config)

    def test_unknown_social_metric_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(social_metric="followers")


class TestBadges:

    def _ctx(self, score: int) -> BadgeContext:
        return BadgeContext(overall_score=score, factors=TrustScoreFactors())

    def test_threshold_is_inclusive(self):
        awarded = evaluate_badges(self._ctx(60), now=NOW)
        assert [(b.id, b.level) for b in awarded] == [("verified_identity", 1)]

    def test_one_below_threshold_earns_nothing(self):
        assert evaluate_badges(self._ctx(59), now=NOW) == []

    def test_highest_level_wins(self):
        awarded = {b.id: b.level for b in evaluate_badges(self._ctx(95), now=NOW)}
        assert awarded == {"verified_identity": 3, "trusted_verifier": 3, "community_leader": 3}

    def test_awarded_badge_carries_level_criteria(self):
        badge = evaluate_badges(self._ctx(80), now=NOW)[0]
        assert badge.id == "verified_identity"
        assert badge.level == 2
        assert badge.criteria["verification_methods"] == ["email", "phone", "government_id"]
        assert badge.awarded_at == NOW

    def test_catalog_levels_ascend(self):
        for badge in TRUST_BADGES:
            thresholds = [lvl.min_score for lvl in badge.levels]
            assert thresholds == sorted(thresholds)
            assert [lvl.level for lvl in badge.levels] == [1, 2, 3]

    def test_get_badge(self):
        assert get_badge("community_leader").name == "Community Leader"
        assert get_badge("nope") is None

    def test_criteria_gate_awards_when_enforced(self):
        config = EngineConfig(enforce_badge_criteria=True)
        awarded = {b.id: b.level for b in _established(config).badges}
        # only ten verifications, five endorsements and no government id on record
        assert awarded == {"verified_identity": 1, "trusted_verifier": 1, "community_leader": 1}

    def test_unknown_criterion_fails_closed(self):
        from app.trust.badges import BadgeDefinition, BadgeLevel

        odd = BadgeDefinition(
            id="odd", name="Odd", description="", icon="", color="",
            levels=(BadgeLevel(1, 0, {"karma": 1}, ()),),
        )
        config = EngineConfig(enforce_badge_criteria=True)
        assert evaluate_badges(self._ctx(100), config, NOW, catalog=(odd,)) == []

    def test_activity_score_rounds_half_up(self):
        factors = TrustScoreFactors(peer_endorsements=PeerEndorsements(endorsement_recency=5))
        assert activity_score(factors) == 3


class TestSuggestions:

    def test_every_sub_metric_below_target(self):
        suggestions = generate_suggestions(TrustScoreFactors())
        assert len(suggestions) == 16
        assert all(s.target_value == 70 and s.priority is Priority.HIGH for s in suggestions)
        assert suggestions[0].factor == "verification_quality.evidence_quality"

    def test_at_target_gets_no_suggestion(self):
        assert generate_suggestions(_uniform_factors(70)) == []

    def test_priority_bands(self):
        assert priority_for(49) is Priority.HIGH
        assert priority_for(50) is Priority.MEDIUM
        assert priority_for(59) is Priority.MEDIUM
        assert priority_for(60) is Priority.LOW

    def test_social_connections_gets_generic_text(self):
        by_factor = {s.factor: s for s in generate_suggestions(TrustScoreFactors())}
        assert by_factor["profile_credibility.social_connections"].improvement == GENERIC_IMPROVEMENT
        assert by_factor["verification_quality.completeness"].improvement == (
            "Provide more complete verification information"
        )

    def test_target_follows_config(self):
        suggestions = generate_suggestions(_uniform_factors(70), EngineConfig(suggestion_target=80))
        assert len(suggestions) == 16
        assert {s.priority for s in suggestions} == {Priority.LOW}


class TestComputeTrustScore:

    def test_established_profile(self):
        score = _established()
        assert score.factors.verification_quality.mean() == 80
        assert score.factors.profile_credibility.mean() == 75
        assert score.factors.peer_endorsements.mean() == 97.5
        assert score.factors.verification_history.mean() == 95
        assert score.overall_score == 85
        assert {b.id: b.level for b in score.badges} == {
            "verified_identity": 2,
            "trusted_verifier": 2,
            "community_leader": 2,
        }
        assert score.counts == {"verifications": 10, "endorsements": 5}

    def test_empty_profile_floor(self):
        profile = Profile(id="fresh", created_at=NOW)
        score = compute_trust_score(profile, [], [], now=NOW)
        assert score.overall_score == 0
        assert score.badges == []
        assert len(score.suggestions) == 16
        assert len(score.history) == 1
        assert score.history[0].reason == "Score calculated"

    def test_deterministic_for_same_inputs(self):
        first, second = _established(), _established()
        assert first.id != second.id
        assert first.overall_score == second.overall_score
        assert first.factors == second.factors
        assert [b.to_dict() for b in first.badges] == [b.to_dict() for b in second.badges]
        assert first.suggestions == second.suggestions

    def test_score_stays_in_bounds(self):
        store = InMemoryTrustStore()
        store.add_profile(complete_profile(age_days=10_000))
        store.add_verification("p-1", {"status": "verified", "quality_score": 500,
                                       "evidence_quality": 900, "method_quality": 200,
                                       "confidence_level": 150, "completeness": 101})
        score = compute_trust_score(*_records(store), now=NOW)
        assert 0 <= score.overall_score <= 100
        for _, values in score.factors.categories():
            assert all(0 <= v <= 100 for v in values.values())

    def test_more_endorsements_never_lower_the_score(self):
        store = InMemoryTrustStore()
        seed_established_profile(store)
        base = compute_trust_score(*_records(store), now=NOW).overall_score
        store.add_endorsement("p-1", {"endorser_id": "peer-9", "quality_score": 90,
                                      "created_at": NOW.isoformat()})
        assert compute_trust_score(*_records(store), now=NOW).overall_score >= base

    def test_previous_history_is_extended(self):
        first = _established()
        second = _established(previous_history=first.history, reason="New verification")
        assert [h.reason for h in second.history] == ["Score calculated", "New verification"]

    def test_round_trips_through_dict(self):
        score = _established()
        assert TrustScore.from_dict(score.to_dict()).to_dict() == score.to_dict()

    def test_history_is_capped_oldest_first(self):
        entries = [HistoryEntry(NOW, i, TrustScoreFactors(), "r") for i in range(5)]
        kept = append_history(entries[:4], entries[4], limit=3)
        assert [h.score for h in kept] == [2, 3, 4]
