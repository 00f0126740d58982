"""
Provider Risk Engine Tests.

============================================================
PURPOSE
============================================================
Tests for RiskScoringEngine covering:
1. Reference scenarios (new provider, healthy, struggling)
2. Level boundaries and trust tier monotonicity
3. Verification, incident and suspension signals
4. Alert and recommendation ordering
5. Fail-fast validation and batch behavior
6. Idempotence

============================================================
"""

import pytest

from provider_risk import (
    CRITICAL_RISK_THRESHOLD,
    HIGH_RISK_THRESHOLD,
    MEDIUM_RISK_THRESHOLD,
    IncidentType,
    InvalidMetricsSnapshotError,
    KycStatus,
    RiskLevel,
    RiskLevelThresholds,
    RiskRule,
    RiskScoringEngine,
    RiskScoringError,
    assess_provider,
    format_risk_summary,
    get_risk_level_from_score,
)
from provider_risk.config import (
    LOW_TRUST_SCORE_PENALTY,
    MODERATE_TRUST_SCORE_PENALTY,
)
from provider_risk.engine import (
    ACTIVE_SUSPENSION_ALERT,
    CRITICAL_RISK_ALERT,
    HIGH_RISK_ALERT,
)


@pytest.fixture
def engine():
    return RiskScoringEngine()


# ============================================================
# REFERENCE SCENARIOS
# ============================================================

class TestReferenceScenarios:
    """End-to-end scoring of representative providers."""

    def test_new_provider_without_bookings(self, engine, make_snapshot):
        snapshot = make_snapshot(total=0, completed=0, cancelled=0, days=2)

        result = engine.assess(snapshot)

        assert result.rates.completion_rate == 0
        assert result.rates.cancellation_rate == 0
        assert result.rates.booking_frequency == 0
        assert "Limited booking history (0 bookings)" in result.risk_factors
        assert result.risk_factors == [
            "Low booking completion rate (0.0%)",
            "Limited booking history (0 bookings)",
        ]
        assert result.risk_score == 25
        assert result.risk_level == RiskLevel.MEDIUM
        # No bookings means no severe-completion alert
        assert result.alerts == []

    def test_healthy_provider(self, engine, make_snapshot):
        snapshot = make_snapshot(total=10, completed=9, cancelled=1, trust_score=90)

        result = engine.assess(snapshot)

        assert result.rates.completion_rate == pytest.approx(90.0)
        assert result.rates.cancellation_rate == pytest.approx(10.0)
        assert result.risk_level == RiskLevel.LOW
        assert result.risk_score == 0
        assert not any("cancellation" in factor for factor in result.risk_factors)
        assert result.alerts == []
        assert result.recommendations == []

    def test_struggling_provider(self, engine, make_snapshot):
        snapshot = make_snapshot(total=10, completed=7, cancelled=3, trust_score=40)

        result = engine.assess(snapshot)

        assert result.risk_factors == [
            "Low booking completion rate (70.0%)",
            "High cancellation rate (30.0%)",
            "Low trust score (40)",
        ]
        assert result.risk_score == 45
        assert result.risk_level.severity_order >= RiskLevel.HIGH.severity_order
        assert result.alerts == [HIGH_RISK_ALERT]

    def test_cancellation_requires_booking_volume(self, engine, make_snapshot):
        snapshot = make_snapshot(total=1, completed=0, cancelled=1)

        result = engine.assess(snapshot)

        assert result.rates.cancellation_rate == 100.0
        assert not any("cancellation" in factor for factor in result.risk_factors)
        assert "Limited booking history (1 bookings)" in result.risk_factors
        assert "Severely low completion rate (0.0%)" in result.alerts


# ============================================================
# LEVELS & MONOTONICITY
# ============================================================

class TestRiskLevels:
    """Tests for score-to-level mapping."""

    @pytest.mark.parametrize("score,expected", [
        (0, RiskLevel.LOW),
        (MEDIUM_RISK_THRESHOLD - 1, RiskLevel.LOW),
        (MEDIUM_RISK_THRESHOLD, RiskLevel.MEDIUM),
        (HIGH_RISK_THRESHOLD - 1, RiskLevel.MEDIUM),
        (HIGH_RISK_THRESHOLD, RiskLevel.HIGH),
        (CRITICAL_RISK_THRESHOLD - 1, RiskLevel.HIGH),
        (CRITICAL_RISK_THRESHOLD, RiskLevel.CRITICAL),
        (250, RiskLevel.CRITICAL),
    ])
    def test_thresholds_closed_on_lower_bound(self, score, expected):
        assert get_risk_level_from_score(score) == expected

    def test_custom_thresholds(self):
        thresholds = RiskLevelThresholds(medium=5, high=10, critical=15)

        assert get_risk_level_from_score(15, thresholds) == RiskLevel.CRITICAL
        assert get_risk_level_from_score(14, thresholds) == RiskLevel.HIGH

    def test_score_at_critical_threshold_is_critical(self, engine, make_snapshot, make_profile):
        # 50 (KYC rejected) + 20 (trust < 50)
        snapshot = make_snapshot(
            trust_score=40,
            verification=make_profile(kyc_status=KycStatus.REJECTED),
        )

        result = engine.assess(snapshot)

        assert result.risk_score == CRITICAL_RISK_THRESHOLD
        assert result.risk_level == RiskLevel.CRITICAL
        assert result.alerts[0] == CRITICAL_RISK_ALERT

    def test_score_below_critical_threshold_is_high(self, engine, make_snapshot, make_profile):
        # 50 (KYC rejected) + 10 (trust < 75)
        snapshot = make_snapshot(
            trust_score=60,
            verification=make_profile(kyc_status=KycStatus.REJECTED),
        )

        result = engine.assess(snapshot)

        assert result.risk_score < CRITICAL_RISK_THRESHOLD
        assert result.risk_level == RiskLevel.HIGH


class TestTrustTierMonotonicity:
    """Lowering the trust score never lowers the risk score."""

    def test_crossing_moderate_tier(self, engine, make_snapshot):
        above = engine.assess(make_snapshot(trust_score=76))
        below = engine.assess(make_snapshot(trust_score=74))

        assert below.risk_score - above.risk_score == MODERATE_TRUST_SCORE_PENALTY
        assert "Below-target trust score (74)" in below.risk_factors

    def test_crossing_low_tier(self, engine, make_snapshot):
        above = engine.assess(make_snapshot(trust_score=51))
        below = engine.assess(make_snapshot(trust_score=49))

        assert below.risk_score - above.risk_score == (
            LOW_TRUST_SCORE_PENALTY - MODERATE_TRUST_SCORE_PENALTY
        )

    def test_tiers_are_mutually_exclusive(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(trust_score=10))

        trust_factors = [f for f in result.risk_factors if "trust score" in f]
        assert trust_factors == ["Low trust score (10)"]

    def test_never_decreases(self, engine, make_snapshot):
        scores = [engine.assess(make_snapshot(trust_score=t)).risk_score for t in range(100, -1, -1)]

        assert scores == sorted(scores)


# ============================================================
# SIGNAL TESTS
# ============================================================

class TestIncidentSignals:
    """Tests for unresolved incident penalty and alerts."""

    def test_linear_penalty(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(incidents=2, unresolved=2))

        assert result.risk_score == 10
        assert "2 unresolved trust incident(s)" in result.risk_factors
        assert "Unresolved trust incidents require attention" in result.alerts

    def test_penalty_is_capped(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(incidents=5, unresolved=5))

        assert result.risk_score == 20
        assert "Multiple unresolved incidents (5)" in result.alerts

    def test_high_frequency_alert_without_penalty(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(incidents=6, unresolved=0, recent=6))

        assert result.risk_score == 0
        assert result.alerts == ["High incident frequency (6 in 30 days)"]

    def test_resolved_incidents_do_not_score(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(incidents=3, unresolved=0, recent=1))

        assert result.risk_score == 0
        assert result.risk_factors == []


class TestVerificationSignals:
    """Tests for KYC and onboarding signals."""

    def test_untracked_verification_scores_nothing(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(verification=None))

        assert not any("KYC" in factor for factor in result.risk_factors)

    def test_rejected_kyc(self, engine, make_snapshot, make_profile):
        result = engine.assess(
            make_snapshot(verification=make_profile(kyc_status=KycStatus.REJECTED))
        )

        assert result.risk_score == 50
        assert result.risk_factors == ["KYC verification rejected"]
        assert "KYC verification rejected: manual review required" in result.alerts

    def test_stale_pending_review(self, engine, make_snapshot, make_profile):
        profile = make_profile(kyc_status=KycStatus.PENDING_REVIEW, kyc_age_days=31)

        result = engine.assess(make_snapshot(verification=profile))

        assert result.risk_score == 20
        assert result.risk_factors == ["KYC review pending for 31 days"]
        assert "Review pending KYC submission" in result.recommendations

    def test_recent_pending_review_is_not_stale(self, engine, make_snapshot, make_profile):
        profile = make_profile(kyc_status=KycStatus.PENDING_REVIEW, kyc_age_days=30)

        result = engine.assess(make_snapshot(verification=profile))

        assert result.risk_score == 0

    def test_missing_documents(self, engine, make_snapshot, make_profile):
        profile = make_profile(
            kyc_status=KycStatus.IN_PROGRESS,
            identity_document_present=False,
            business_document_present=False,
            payment_account_connected=False,
            charges_enabled=False,
            payouts_enabled=False,
        )

        result = engine.assess(make_snapshot(verification=profile))

        assert result.risk_score == 30
        assert result.risk_factors == [
            "Missing verification documents: "
            "Identity Document, Business Document, Bank Account Verification"
        ]
        assert result.recommendations == [
            "Request missing Identity Document",
            "Request missing Business Document",
            "Complete KYC submission",
            "Connect a payment account to enable payouts",
        ]

    def test_incomplete_payment_onboarding(self, engine, make_snapshot, make_profile):
        profile = make_profile(charges_enabled=True, payouts_enabled=False)

        result = engine.assess(make_snapshot(verification=profile))

        assert result.risk_score == 0
        assert result.recommendations == ["Finish payment account onboarding"]


# ============================================================
# ALERTS & RECOMMENDATIONS
# ============================================================

class TestAlertsAndRecommendations:
    """Ordering and score independence."""

    def test_alert_order(self, engine, make_snapshot, make_profile):
        snapshot = make_snapshot(
            trust_score=40,
            incidents=1,
            unresolved=1,
            suspensions=1,
            active_suspensions=1,
            verification=make_profile(kyc_status=KycStatus.REJECTED),
        )

        result = engine.assess(snapshot)

        assert result.risk_score == 75
        assert result.risk_factors == [
            "KYC verification rejected",
            "Low trust score (40)",
            "1 unresolved trust incident(s)",
        ]
        assert result.alerts == [
            CRITICAL_RISK_ALERT,
            "KYC verification rejected: manual review required",
            "Unresolved trust incidents require attention",
            ACTIVE_SUSPENSION_ALERT,
        ]

    def test_recommendations_never_change_score(self, engine, make_snapshot):
        calm = engine.assess(make_snapshot())
        disputed = engine.assess(make_snapshot(disputes=2, unresolved_disputes=1))

        assert disputed.risk_score == calm.risk_score
        assert disputed.recommendations == ["Resolve open disputes"]
        assert calm.recommendations == []

    def test_performance_recommendations(self, engine, make_snapshot):
        result = engine.assess(
            make_snapshot(total=10, completed=5, cancelled=5, incidents=1, unresolved=1)
        )

        assert result.recommendations == [
            "Provide performance improvement guidance",
            "Investigate frequent cancellation reasons",
            "Resolve outstanding trust incidents",
        ]


# ============================================================
# RULES IN ASSESSMENT
# ============================================================

class TestApplicableRules:
    """Rule matching as part of assess()."""

    def test_applicable_rules_in_given_order(self, engine, make_snapshot):
        rules = [
            RiskRule(id="r1", name="Complaints", incident_type=IncidentType.COMPLAINT, severity="low"),
            RiskRule(id="r2", name="Bad reviews", incident_type=IncidentType.REVIEW_ABUSE, severity="medium"),
            RiskRule(id="r3", name="Violations", incident_type=IncidentType.VIOLATION,
                     severity="high", auto_suspend=True, suspend_duration_days=7),
        ]
        snapshot = make_snapshot(incidents=2, unresolved=1)

        result = engine.assess(snapshot, rules)

        assert [rule.id for rule in result.applicable_rules] == ["r1", "r3"]
        assert result.requires_auto_suspension

    def test_no_rules(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(incidents=2, unresolved=1), [])

        assert result.applicable_rules == []
        assert not result.requires_auto_suspension


# ============================================================
# VALIDATION
# ============================================================

class TestValidation:
    """Malformed snapshots fail fast."""

    def test_none_snapshot(self, engine):
        with pytest.raises(InvalidMetricsSnapshotError, match="invalid metrics snapshot"):
            engine.assess(None)

    def test_wrong_type(self, engine, make_row):
        with pytest.raises(InvalidMetricsSnapshotError):
            engine.assess(make_row())

    def test_outcomes_exceed_total(self, engine, make_snapshot):
        with pytest.raises(InvalidMetricsSnapshotError, match="completed \\+ cancelled exceeds total"):
            engine.assess(make_snapshot(total=5, completed=4, cancelled=3))

    def test_negative_count(self, engine, make_snapshot):
        with pytest.raises(InvalidMetricsSnapshotError, match="non-negative"):
            engine.assess(make_snapshot(incidents=-1))

    def test_rating_without_reviews(self, engine, make_snapshot):
        with pytest.raises(InvalidMetricsSnapshotError):
            engine.assess(make_snapshot(reviews=0, avg_rating=4.0))

    def test_reviews_without_rating(self, engine, make_snapshot):
        with pytest.raises(InvalidMetricsSnapshotError):
            engine.assess(make_snapshot(reviews=2, avg_rating=None))

    def test_error_carries_provider_id(self, engine, make_snapshot):
        with pytest.raises(InvalidMetricsSnapshotError) as exc_info:
            engine.assess(make_snapshot(provider_id="prov-9", unresolved=2, incidents=1))

        assert exc_info.value.provider_id == "prov-9"
        assert "prov-9" in str(exc_info.value)


# ============================================================
# BATCH & IDEMPOTENCE
# ============================================================

class TestBatch:
    """Tests for assess_batch()."""

    def test_keyed_by_provider_in_input_order(self, engine, make_snapshot):
        snapshots = [
            make_snapshot(provider_id="b"),
            make_snapshot(provider_id="a", trust_score=40),
        ]

        results = engine.assess_batch(snapshots)

        assert list(results) == ["b", "a"]
        assert results["a"].risk_score == 20

    def test_matches_single_assessment(self, engine, make_snapshot):
        snapshots = [make_snapshot(provider_id=f"p{i}", trust_score=30 + 10 * i) for i in range(5)]

        results = engine.assess_batch(snapshots)

        for snapshot in snapshots:
            assert results[snapshot.provider_id] == engine.assess(snapshot)

    def test_raises_on_first_invalid_by_default(self, engine, make_snapshot):
        snapshots = [
            make_snapshot(provider_id="ok"),
            make_snapshot(provider_id="bad", total=1, completed=2, cancelled=0),
        ]

        with pytest.raises(InvalidMetricsSnapshotError):
            engine.assess_batch(snapshots)

    def test_skip_invalid(self, engine, make_snapshot):
        snapshots = [
            make_snapshot(provider_id="ok"),
            make_snapshot(provider_id="bad", total=1, completed=2, cancelled=0),
            make_snapshot(provider_id="also-ok"),
        ]

        results = engine.assess_batch(snapshots, skip_invalid=True)

        assert list(results) == ["ok", "also-ok"]

    def test_duplicate_provider(self, engine, make_snapshot):
        with pytest.raises(RiskScoringError, match="duplicate"):
            engine.assess_batch([make_snapshot(), make_snapshot()])

    def test_empty_batch(self, engine):
        assert engine.assess_batch([]) == {}


class TestIdempotence:
    """Repeated assessment yields identical output."""

    def test_same_input_same_output(self, engine, make_snapshot, make_profile):
        snapshot = make_snapshot(
            trust_score=55,
            incidents=4,
            unresolved=2,
            recent=1,
            verification=make_profile(kyc_status=KycStatus.PENDING_REVIEW, kyc_age_days=45),
        )
        rules = [RiskRule(id="r1", name="Violations", incident_type=IncidentType.VIOLATION, severity="high")]

        first = engine.assess(snapshot, rules)
        second = engine.assess(snapshot, rules)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_fresh_engines_agree(self, make_snapshot):
        snapshot = make_snapshot(trust_score=45, total=3, completed=1, cancelled=2)

        assert RiskScoringEngine().assess(snapshot) == assess_provider(snapshot)


# ============================================================
# FORMATTING
# ============================================================

class TestFormatRiskSummary:
    """Tests for format_risk_summary()."""

    def test_summary_contents(self, engine, make_snapshot):
        result = engine.assess(make_snapshot(provider_id="prov-7", total=10, completed=7,
                                             cancelled=3, trust_score=40))

        summary = format_risk_summary(result)

        assert "PROVIDER RISK SUMMARY: prov-7" in summary
        assert "Risk Score: 45" in summary
        assert "Risk Level: HIGH" in summary
        assert "  - Low trust score (40)" in summary

    def test_empty_sections(self, engine, make_snapshot):
        summary = format_risk_summary(engine.assess(make_snapshot()))

        assert "  - None" in summary
        assert "Applicable Rules:" not in summary
