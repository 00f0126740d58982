"""
Provider Risk Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
The RiskScoringEngine is the entry point for provider risk
assessment.

It orchestrates:
1. Input validation
2. Derived rate computation
3. Per-concern assessments
4. Score aggregation and level classification
5. Alerts and recommendations
6. Risk rule matching
7. Result packaging

============================================================
DESIGN PRINCIPLES
============================================================
- Accepts pre-fetched metrics; never issues queries
- Stateless and side-effect free: safe to call concurrently
- Deterministic: identical input gives equal output
- Fails fast on malformed snapshots

============================================================
USAGE
============================================================
    from provider_risk import RiskScoringEngine

    engine = RiskScoringEngine()

    assessment = engine.assess(snapshot, enabled_rules)
    print(f"{assessment.risk_level.value}: {assessment.risk_score}")

    by_provider = engine.assess_batch(snapshots, enabled_rules)

============================================================
"""

import logging
from typing import Dict, Iterable, List, Optional

from .types import (
    DerivedRates,
    FactorAssessment,
    InvalidMetricsSnapshotError,
    KycStatus,
    OnboardingStatus,
    ProviderMetricsSnapshot,
    RiskAssessment,
    RiskLevel,
    RiskRule,
    RiskScoringError,
)
from .config import RiskLevelThresholds, RiskScoringConfig
from .assessors import (
    BaseRiskAssessor,
    IncidentRiskAssessor,
    PerformanceRiskAssessor,
    TrustScoreRiskAssessor,
    VerificationRiskAssessor,
)
from .rates import compute_derived_rates
from .rules import RiskRuleMatcher
from .verification import (
    BANK_VERIFICATION,
    is_review_stale,
    missing_documents,
    onboarding_status,
)

logger = logging.getLogger(__name__)


CRITICAL_RISK_ALERT = "CRITICAL RISK: Immediate action required"
HIGH_RISK_ALERT = "HIGH RISK: Enhanced monitoring activated"
ACTIVE_SUSPENSION_ALERT = "Provider has an active suspension"


class RiskScoringEngine:
    """
    Main orchestrator for provider risk assessment.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    1. Initialize and configure assessors
    2. Validate snapshots
    3. Run all assessments in a fixed order
    4. Sum points into the risk score
    5. Classify the risk level
    6. Build alerts and recommendations
    7. Match enabled risk rules

    ============================================================
    """

    def __init__(self, config: Optional[RiskScoringConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Engine and assessor configuration.
                    Uses defaults if not provided.
        """
        self.config = config or RiskScoringConfig()

        # Evaluation order fixes the order of factors and alerts
        self._assessors: List[BaseRiskAssessor] = [
            VerificationRiskAssessor(self.config.verification),
            PerformanceRiskAssessor(self.config.performance),
            TrustScoreRiskAssessor(self.config.trust),
            IncidentRiskAssessor(self.config.incidents),
        ]
        self._rule_matcher = RiskRuleMatcher(self.config.rules)

    def assess(
        self,
        snapshot: ProviderMetricsSnapshot,
        enabled_rules: Iterable[RiskRule] = (),
    ) -> RiskAssessment:
        """
        Assess a single provider.

        Args:
            snapshot: Pre-aggregated provider metrics
            enabled_rules: Enabled risk rules, in display order

        Returns:
            RiskAssessment for the provider

        Raises:
            InvalidMetricsSnapshotError: If the snapshot is malformed
            RiskScoringError: On any other failure
        """
        self._validate_input(snapshot)

        try:
            rates = compute_derived_rates(snapshot)

            results = [assessor.assess(snapshot, rates) for assessor in self._assessors]

            risk_score = sum(result.points for result in results)
            risk_level = self.config.levels.classify(risk_score)

            risk_factors = [factor for result in results for factor in result.factors]
            alerts = self._build_alerts(snapshot, risk_level, results)
            recommendations = self._build_recommendations(snapshot, rates)

            applicable_rules = self._rule_matcher.applicable_rules(enabled_rules, snapshot, rates)

        except RiskScoringError:
            raise
        except Exception as e:
            raise RiskScoringError(
                f"Assessment failed: {str(e)}", provider_id=snapshot.provider_id
            ) from e

        logger.debug(
            f"Assessed provider {snapshot.provider_id}: "
            f"score={risk_score} level={risk_level.value} "
            f"factors={len(risk_factors)} rules={len(applicable_rules)}"
        )

        return RiskAssessment(
            provider_id=snapshot.provider_id,
            risk_score=risk_score,
            risk_level=risk_level,
            risk_factors=risk_factors,
            recommendations=recommendations,
            alerts=alerts,
            applicable_rules=applicable_rules,
            rates=rates,
        )

    def assess_batch(
        self,
        snapshots: Iterable[ProviderMetricsSnapshot],
        enabled_rules: Iterable[RiskRule] = (),
        skip_invalid: bool = False,
    ) -> Dict[str, RiskAssessment]:
        """
        Assess many providers independently.

        Args:
            snapshots: Snapshots to assess
            enabled_rules: Enabled risk rules shared by every provider
            skip_invalid: Log and skip malformed snapshots instead of
                raising on the first one

        Returns:
            Assessments keyed by provider id, in input order

        Raises:
            RiskScoringError: On a malformed or duplicate snapshot
                when skip_invalid is False
        """
        rules = list(enabled_rules or [])
        assessments: Dict[str, RiskAssessment] = {}
        skipped = 0

        for snapshot in snapshots:
            try:
                provider_id = getattr(snapshot, "provider_id", None)
                if provider_id in assessments:
                    raise RiskScoringError(
                        f"duplicate snapshot for provider {provider_id}", provider_id=provider_id
                    )
                assessments[provider_id] = self.assess(snapshot, rules)
            except RiskScoringError as e:
                if not skip_invalid:
                    raise
                skipped += 1
                logger.warning(f"Skipping provider {e.provider_id}: {e}")

        logger.info(f"Assessed {len(assessments)} providers ({skipped} skipped)")
        return assessments

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _validate_input(self, snapshot: ProviderMetricsSnapshot) -> None:
        """
        Validate the snapshot before scoring.

        Raises:
            InvalidMetricsSnapshotError: If the snapshot is missing or breaks
                an invariant
        """
        if snapshot is None:
            raise InvalidMetricsSnapshotError("snapshot is None")

        if not isinstance(snapshot, ProviderMetricsSnapshot):
            raise InvalidMetricsSnapshotError(
                f"expected ProviderMetricsSnapshot, got {type(snapshot).__name__}"
            )

        errors = snapshot.validation_errors()
        if errors:
            provider_id = snapshot.provider_id if isinstance(snapshot.provider_id, str) else None
            raise InvalidMetricsSnapshotError("; ".join(errors), provider_id=provider_id)

    def _build_alerts(
        self,
        snapshot: ProviderMetricsSnapshot,
        risk_level: RiskLevel,
        results: List[FactorAssessment],
    ) -> List[str]:
        """Level banner first, then assessor alerts in evaluation order."""
        alerts: List[str] = []

        if risk_level == RiskLevel.CRITICAL:
            alerts.append(CRITICAL_RISK_ALERT)
        elif risk_level == RiskLevel.HIGH:
            alerts.append(HIGH_RISK_ALERT)

        for result in results:
            alerts.extend(result.alerts)

        if snapshot.has_active_suspension:
            alerts.append(ACTIVE_SUSPENSION_ALERT)

        return alerts

    def _build_recommendations(
        self,
        snapshot: ProviderMetricsSnapshot,
        rates: DerivedRates,
    ) -> List[str]:
        """
        Advisory suggestions for unmet best practices.

        Never affects the score.
        """
        recommendations: List[str] = []
        performance = self.config.performance
        profile = snapshot.verification

        if profile is not None:
            for document in missing_documents(profile):
                if document != BANK_VERIFICATION:
                    recommendations.append(f"Request missing {document}")

            if profile.kyc_status in (KycStatus.NOT_STARTED, KycStatus.IN_PROGRESS):
                recommendations.append("Complete KYC submission")

            if is_review_stale(profile, self.config.verification.stale_review_days):
                recommendations.append("Review pending KYC submission")

            onboarding = onboarding_status(profile)
            if onboarding == OnboardingStatus.NOT_STARTED:
                recommendations.append("Connect a payment account to enable payouts")
            elif onboarding == OnboardingStatus.IN_PROGRESS:
                recommendations.append("Finish payment account onboarding")

        if rates.completion_rate < performance.completion_rate_floor_pct:
            recommendations.append("Provide performance improvement guidance")

        if (
            rates.cancellation_rate > performance.cancellation_rate_ceiling_pct
            and snapshot.total_bookings >= performance.min_bookings_for_rates
        ):
            recommendations.append("Investigate frequent cancellation reasons")

        if snapshot.incidents.unresolved > 0:
            recommendations.append("Resolve outstanding trust incidents")

        if snapshot.disputes.unresolved > 0:
            recommendations.append("Resolve open disputes")

        return recommendations

    def get_config(self) -> RiskScoringConfig:
        """Return the current engine configuration."""
        return self.config


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def assess_provider(
    snapshot: ProviderMetricsSnapshot,
    enabled_rules: Iterable[RiskRule] = (),
    config: Optional[RiskScoringConfig] = None,
) -> RiskAssessment:
    """
    Convenience function to assess one provider in one call.

    For repeated scoring, prefer a persistent RiskScoringEngine.
    """
    return RiskScoringEngine(config=config).assess(snapshot, enabled_rules)


def get_risk_level_from_score(
    risk_score: int,
    thresholds: Optional[RiskLevelThresholds] = None,
) -> RiskLevel:
    """Map a risk score to its level using the given (or default) thresholds."""
    return (thresholds or RiskLevelThresholds()).classify(risk_score)


def format_risk_summary(assessment: RiskAssessment) -> str:
    """
    Format a human-readable risk summary.

    Useful for logging and admin notes.
    """
    lines = [
        "=" * 50,
        f"PROVIDER RISK SUMMARY: {assessment.provider_id}",
        "=" * 50,
        f"Risk Score: {assessment.risk_score}",
        f"Risk Level: {assessment.risk_level.value.upper()}",
        "",
        "Risk Factors:",
    ]
    lines.extend(f"  - {factor}" for factor in assessment.risk_factors or ["None"])
    lines.append("")
    lines.append("Alerts:")
    lines.extend(f"  - {alert}" for alert in assessment.alerts or ["None"])
    lines.append("")
    lines.append("Recommendations:")
    lines.extend(f"  - {rec}" for rec in assessment.recommendations or ["None"])
    if assessment.applicable_rules:
        lines.append("")
        lines.append("Applicable Rules:")
        lines.extend(
            f"  - {rule.name} ({rule.incident_type.value}, {rule.severity})"
            for rule in assessment.applicable_rules
        )
    lines.append("=" * 50)

    return "\n".join(lines)
