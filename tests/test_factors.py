"""Factor calculators: each category of sub-metrics from raw records."""
import pytest

from conftest import NOW, complete_profile, days_ago, endorsement, verification

from app.trust.engine import compute_trust_score
from app.trust.factors import (
    account_age_score,
    calculate_peer_endorsements,
    calculate_profile_credibility,
    calculate_verification_history,
    calculate_verification_quality,
    consistency_score,
    linked_presence,
    normalize_count,
    percentage,
    round_half_up,
)
from app.trust.models import EndorsementRecord, Profile, VerificationRecord, to_number
from app.trust.weights import EngineConfig


def _verifications(*qualities, status="verified"):
    return [VerificationRecord.from_dict(verification(q, status=status)) for q in qualities]


def _endorsements(*rows):
    return [EndorsementRecord.from_dict(endorsement(*row)) for row in rows]


class TestRounding:

    def test_half_rounds_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(0.5) == 1
        assert round_half_up(87.49) == 87

    def test_percentage(self):
        assert percentage(1, 8) == 13
        assert percentage(0, 0) == 0
        assert percentage(3, 3) == 100

    def test_normalize_count_caps_at_100(self):
        assert normalize_count(0, 5) == 0
        assert normalize_count(3, 5) == 60
        assert normalize_count(12, 5) == 100


class TestVerificationQuality:

    def test_empty_is_all_zero(self):
        vq = calculate_verification_quality([])
        assert vq.as_dict() == {
            "evidence_quality": 0,
            "verification_method": 0,
            "confidence_level": 0,
            "completeness": 0,
        }

    def test_only_most_recent_five_count(self):
        records = _verifications(0, 100, 100, 100, 100, 100)
        vq = calculate_verification_quality(records)
        assert vq.evidence_quality == 100
        assert vq.verification_method == 100

    def test_window_follows_config(self):
        records = _verifications(0, 100)
        vq = calculate_verification_quality(records, EngineConfig(recent_verifications=1))
        assert vq.completeness == 100

    def test_missing_sub_scores_count_as_zero(self):
        record = VerificationRecord.from_dict({"status": "verified", "evidence_quality": 90})
        vq = calculate_verification_quality([record])
        assert vq.evidence_quality == 90
        assert vq.confidence_level == 0

    def test_method_quality_feeds_verification_method(self):
        record = VerificationRecord.from_dict({"method_quality": 64})
        assert calculate_verification_quality([record]).verification_method == 64

    def test_out_of_range_sub_scores_are_clamped(self):
        record = VerificationRecord.from_dict({"evidence_quality": 140, "completeness": -20})
        vq = calculate_verification_quality([record])
        assert vq.evidence_quality == 100
        assert vq.completeness == 0


class TestProfileCredibility:

    def test_completeness_counts_four_fields(self):
        profile = Profile.from_dict(complete_profile(bio="", avatar_url=None))
        pc = calculate_profile_credibility(profile, [], now=NOW)
        assert pc.profile_completeness == 50

    def test_full_name_stands_in_for_name(self):
        data = complete_profile()
        data["full_name"] = data.pop("name")
        profile = Profile.from_dict(data)
        assert calculate_profile_credibility(profile, [], now=NOW).profile_completeness == 100

    def test_account_age_saturates(self):
        assert account_age_score(days_ago(40), NOW) == 40
        assert account_age_score(days_ago(400), NOW) == 100
        assert account_age_score(None, NOW) == 0

    def test_future_signup_is_zero_not_negative(self):
        assert account_age_score(days_ago(-3), NOW) == 0

    def test_verification_history_is_success_rate(self):
        records = _verifications(80, 80, 80) + _verifications(80, status="rejected")
        pc = calculate_profile_credibility(Profile(id="p"), records, now=NOW)
        assert pc.verification_history == 75

    def test_no_verifications_gives_zero_success(self):
        pc = calculate_profile_credibility(Profile(id="p"), [], now=NOW)
        assert pc.verification_history == 0

    def test_social_connections_default_zero(self):
        profile = Profile.from_dict(complete_profile(linkedin="https://linkedin.com/in/ada"))
        assert calculate_profile_credibility(profile, [], now=NOW).social_connections == 0

    def test_linked_presence_metric(self):
        profile = Profile.from_dict(complete_profile(linkedin="https://linkedin.com/in/ada", phone="+44"))
        assert linked_presence(profile) == 67
        config = EngineConfig(social_metric="linked_presence")
        assert calculate_profile_credibility(profile, [], config, NOW).social_connections == 67


class TestPeerEndorsements:

    def test_empty_is_all_zero(self):
        assert calculate_peer_endorsements([], now=NOW).mean() == 0

    def test_counts_quality_diversity_recency(self):
        records = _endorsements(("a", 80, 1), ("a", 100, 2), ("b", 90, 60))
        pe = calculate_peer_endorsements(records, now=NOW)
        assert pe.endorsement_count == 60
        assert pe.endorsement_quality == 90
        assert pe.endorsement_diversity == 67
        assert pe.endorsement_recency == 67

    def test_recency_window_is_strict(self):
        records = _endorsements(("a", 90, 30), ("b", 90, 29.9))
        assert calculate_peer_endorsements(records, now=NOW).endorsement_recency == 50

    def test_undated_endorsement_is_not_recent(self):
        record = EndorsementRecord(endorser_id="a", quality_score=70)
        assert calculate_peer_endorsements([record], now=NOW).endorsement_recency == 0

    def test_count_saturates_at_target(self):
        records = _endorsements(*[(f"peer-{i}", 90, 1) for i in range(9)])
        assert calculate_peer_endorsements(records, now=NOW).endorsement_count == 100


class TestVerificationHistory:

    def test_empty_is_all_zero(self):
        assert calculate_verification_history([]).as_dict() == {
            "total_verifications": 0,
            "success_rate": 0,
            "average_quality": 0,
            "consistency_score": 0,
        }

    def test_single_record_is_perfectly_consistent(self):
        vh = calculate_verification_history(_verifications(73))
        assert vh.consistency_score == 100
        assert vh.total_verifications == 10
        assert vh.average_quality == 73

    def test_variance_costs_ten_points_per_unit(self):
        assert consistency_score([79, 81]) == 90
        assert consistency_score([0, 100]) == 0

    def test_success_rate_counts_only_verified(self):
        records = _verifications(80) + _verifications(80, status="pending")
        assert calculate_verification_history(records).success_rate == 50


class TestNonFiniteInput:

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan"), float("inf"), 10 ** 400])
    def test_to_number_drops_non_finite(self, raw):
        assert to_number(raw) == 0.0

    def test_huge_finite_scores_are_capped_per_record(self):
        records = [VerificationRecord.from_dict({"status": "verified", "quality_score": 1e308,
                                                 "evidence_quality": 1e308})] * 2
        vh = calculate_verification_history(records)
        assert vh.average_quality == 100
        assert vh.consistency_score == 100
        assert calculate_verification_quality(records).evidence_quality == 100

    def test_out_of_range_record_cannot_mask_others(self):
        records = _verifications(0) + [VerificationRecord(status="verified", quality_score=1e308)]
        assert calculate_verification_history(records).average_quality == 50

    def test_directly_built_records_with_nan_and_inf(self):
        records = [
            VerificationRecord(status="verified", quality_score=float("nan"), evidence_quality=float("inf")),
            VerificationRecord(status="verified", quality_score=80, evidence_quality=80),
        ]
        vh = calculate_verification_history(records)
        assert vh.average_quality == 40
        assert calculate_verification_quality(records).evidence_quality == 40
        endorsements = [EndorsementRecord(endorser_id="a", quality_score=float("inf"))]
        assert calculate_peer_endorsements(endorsements, now=NOW).endorsement_quality == 0

    @pytest.mark.parametrize("raw", ["nan", "inf", float("inf"), 1e308])
    def test_full_computation_never_raises(self, raw):
        profile = Profile.from_dict(complete_profile())
        records = [VerificationRecord.from_dict({"status": "verified", "quality_score": raw,
                                                 "evidence_quality": raw})] * 2
        endorsements = [EndorsementRecord.from_dict({"endorser_id": "a", "quality_score": raw})]
        score = compute_trust_score(profile, records, endorsements, now=NOW)
        assert 0 <= score.overall_score <= 100
