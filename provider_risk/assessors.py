"""
Provider Risk Engine - Assessors.

============================================================
PURPOSE
============================================================
One assessor per scoring concern. Each assessor:
1. Takes a validated snapshot and its derived rates
2. Applies threshold-based logic from its config
3. Returns a FactorAssessment (points + factors + alerts)

============================================================
DESIGN PRINCIPLES
============================================================
- Pure: same input = same output
- No external state or side effects
- Additive: the engine sums points across assessors
- Factor order follows condition evaluation order

============================================================
EVALUATION ORDER
============================================================
1. Verification (KYC rejection, stale review, missing docs)
2. Performance (completion, cancellation, booking history)
3. Trust score tier
4. Unresolved trust incidents

============================================================
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .types import (
    DerivedRates,
    FactorAssessment,
    KycStatus,
    ProviderMetricsSnapshot,
)
from .config import (
    IncidentRiskConfig,
    PerformanceRiskConfig,
    TrustScoreRiskConfig,
    VerificationRiskConfig,
)
from .verification import is_review_stale, missing_documents


# ============================================================
# BASE ASSESSOR
# ============================================================


class BaseRiskAssessor(ABC):
    """
    Abstract base class for provider risk assessors.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name of the concern this assessor scores."""
        pass

    @abstractmethod
    def assess(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> FactorAssessment:
        """Score one provider."""
        pass

    @staticmethod
    def _pct(value: float) -> str:
        return f"{value:.1f}%"


# ============================================================
# VERIFICATION RISK ASSESSOR
# ============================================================


class VerificationRiskAssessor(BaseRiskAssessor):
    """
    Assess KYC / verification risk.

    ============================================================
    CONDITIONS
    ============================================================
    - KYC rejected: fixed penalty, factor and alert
    - KYC pending review for too long: fixed penalty
    - Each missing verification document: fixed penalty

    Providers without a tracked verification profile score 0.

    ============================================================
    """

    def __init__(self, config: Optional[VerificationRiskConfig] = None):
        self.config = config or VerificationRiskConfig()

    @property
    def name(self) -> str:
        return "verification"

    def assess(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> FactorAssessment:
        profile = snapshot.verification
        if profile is None:
            return FactorAssessment()

        points = 0
        factors: List[str] = []
        alerts: List[str] = []

        if profile.kyc_status == KycStatus.REJECTED:
            points += self.config.rejection_penalty
            factors.append("KYC verification rejected")
            alerts.append("KYC verification rejected: manual review required")

        if is_review_stale(profile, self.config.stale_review_days):
            points += self.config.stale_review_penalty
            factors.append(f"KYC review pending for {profile.kyc_age_days} days")

        missing = missing_documents(profile)
        if missing:
            points += len(missing) * self.config.missing_document_penalty
            factors.append(f"Missing verification documents: {', '.join(missing)}")

        return FactorAssessment(points=points, factors=factors, alerts=alerts)


# ============================================================
# PERFORMANCE RISK ASSESSOR
# ============================================================


class PerformanceRiskAssessor(BaseRiskAssessor):
    """
    Assess booking performance risk from all-time rates.

    ============================================================
    CONDITIONS
    ============================================================
    1. Completion rate below floor
    2. Cancellation rate above ceiling, with enough bookings
    3. Too few bookings to trust the rates
    4. (alert only) Severely low completion rate

    ============================================================
    """

    def __init__(self, config: Optional[PerformanceRiskConfig] = None):
        self.config = config or PerformanceRiskConfig()

    @property
    def name(self) -> str:
        return "performance"

    def assess(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> FactorAssessment:
        cfg = self.config
        total = snapshot.total_bookings

        points = 0
        factors: List[str] = []
        alerts: List[str] = []

        if rates.completion_rate < cfg.completion_rate_floor_pct:
            points += cfg.low_completion_penalty
            factors.append(f"Low booking completion rate ({self._pct(rates.completion_rate)})")

        # Volume gate: one cancellation out of one booking is not a pattern
        if rates.cancellation_rate > cfg.cancellation_rate_ceiling_pct and total >= cfg.min_bookings_for_rates:
            points += cfg.high_cancellation_penalty
            factors.append(f"High cancellation rate ({self._pct(rates.cancellation_rate)})")

        if total < cfg.min_bookings_for_rates:
            points += cfg.limited_history_penalty
            factors.append(f"Limited booking history ({total} bookings)")

        if total > 0 and rates.completion_rate < cfg.severe_completion_rate_pct:
            alerts.append(f"Severely low completion rate ({self._pct(rates.completion_rate)})")

        return FactorAssessment(points=points, factors=factors, alerts=alerts)


# ============================================================
# TRUST SCORE RISK ASSESSOR
# ============================================================


class TrustScoreRiskAssessor(BaseRiskAssessor):
    """
    Assess risk from the platform trust score.

    Tiers are mutually exclusive: only the lowest applicable
    tier fires.
    """

    def __init__(self, config: Optional[TrustScoreRiskConfig] = None):
        self.config = config or TrustScoreRiskConfig()

    @property
    def name(self) -> str:
        return "trust_score"

    def assess(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> FactorAssessment:
        score = snapshot.trust_score

        if score < self.config.low_threshold:
            return FactorAssessment(
                points=self.config.low_penalty,
                factors=[f"Low trust score ({score})"],
            )
        elif score < self.config.moderate_threshold:
            return FactorAssessment(
                points=self.config.moderate_penalty,
                factors=[f"Below-target trust score ({score})"],
            )
        return FactorAssessment()


# ============================================================
# INCIDENT RISK ASSESSOR
# ============================================================


class IncidentRiskAssessor(BaseRiskAssessor):
    """
    Assess risk from trust incidents.

    ============================================================
    CONDITIONS
    ============================================================
    - Unresolved incidents: min(cap, unresolved * per_incident)
      plus an alert demanding attention
    - (alert only) Many unresolved incidents
    - (alert only) High incident frequency in the last 30 days

    ============================================================
    """

    def __init__(self, config: Optional[IncidentRiskConfig] = None):
        self.config = config or IncidentRiskConfig()

    @property
    def name(self) -> str:
        return "incidents"

    def assess(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> FactorAssessment:
        cfg = self.config
        unresolved = snapshot.incidents.unresolved
        recent = snapshot.incidents.recent

        points = 0
        factors: List[str] = []
        alerts: List[str] = []

        if unresolved > 0:
            points += min(cfg.penalty_cap, unresolved * cfg.per_incident_penalty)
            factors.append(f"{unresolved} unresolved trust incident(s)")
            alerts.append("Unresolved trust incidents require attention")

        if unresolved > cfg.multiple_unresolved_alert_count:
            alerts.append(f"Multiple unresolved incidents ({unresolved})")

        if recent > cfg.high_frequency_alert_count:
            alerts.append(f"High incident frequency ({recent} in 30 days)")

        return FactorAssessment(points=points, factors=factors, alerts=alerts)
