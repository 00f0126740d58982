"""
Provider Risk Engine - Package.

============================================================
PURPOSE
============================================================
Scores marketplace providers for short-term operational risk
and aggregates the provider health report admins review.

============================================================
WHAT IT IS
============================================================
- A pure, deterministic scoring engine over pre-aggregated
  per-provider metrics
- A rule matcher for admin-configured risk rules
- A batched metrics aggregator (one query per category)
- Platform analytics and a filterable health report

============================================================
WHAT IT IS NOT
============================================================
- NOT the platform trust score (that is an input)
- NOT an enforcement layer: rules are matched, never applied
- NOT a persistence layer for assessments (always recomputed)

============================================================
SCORING
============================================================
Additive penalty points:
1. Verification: KYC rejected, stale review, missing documents
2. Completion rate below 80%
3. Cancellation rate above 20% (at least 5 bookings)
4. Limited booking history (fewer than 5 bookings)
5. Trust score tier (< 50, else < 75)
6. Unresolved trust incidents (capped linear)

Classification:
- CRITICAL (>= 70)
- HIGH (>= 40)
- MEDIUM (>= 20)
- LOW (otherwise)

============================================================
USAGE
============================================================
    from provider_risk import (
        ProviderMetricsSnapshot,
        RiskScoringEngine,
    )

    snapshot = ProviderMetricsSnapshot.from_mapping(row)

    engine = RiskScoringEngine()
    assessment = engine.assess(snapshot, enabled_rules)

    print(f"Risk Level: {assessment.risk_level.value}")
    print(f"Risk Score: {assessment.risk_score}")
    for factor in assessment.risk_factors:
        print(f"  - {factor}")

============================================================
"""

# Types
from .types import (
    # Enums
    RiskLevel,
    IncidentType,
    KycStatus,
    DocumentStatus,
    OnboardingStatus,

    # Input types
    BookingCounts,
    ReviewMetrics,
    IncidentMetrics,
    SuspensionMetrics,
    DisputeMetrics,
    RefundMetrics,
    VerificationProfile,
    ProviderMetricsSnapshot,
    RiskRule,

    # Output types
    DerivedRates,
    FactorAssessment,
    RiskAssessment,

    # Exceptions
    RiskScoringError,
    InvalidMetricsSnapshotError,
    InvalidRiskRuleError,
)

# Configuration
from .config import (
    CRITICAL_RISK_THRESHOLD,
    HIGH_RISK_THRESHOLD,
    MEDIUM_RISK_THRESHOLD,
    RiskLevelThresholds,
    VerificationRiskConfig,
    PerformanceRiskConfig,
    TrustScoreRiskConfig,
    IncidentRiskConfig,
    RuleMatchingConfig,
    RiskScoringConfig,
    get_default_config,
    get_conservative_config,
    get_config_from_env,
)

# Rates
from .rates import (
    rate,
    compute_derived_rates,
    growth_percentage,
    compare_adjacent_windows,
    WindowComparison,
)

# Verification
from .verification import VerificationSummary

# Assessors
from .assessors import (
    BaseRiskAssessor,
    VerificationRiskAssessor,
    PerformanceRiskAssessor,
    TrustScoreRiskAssessor,
    IncidentRiskAssessor,
)

# Rules
from .rules import RiskRuleMatcher

# Engine
from .engine import (
    RiskScoringEngine,
    assess_provider,
    get_risk_level_from_score,
    format_risk_summary,
)

# Analytics & reporting
from .analytics import (
    DailyBookingPoint,
    GrowthMetrics,
    PlatformAverages,
    RiskDistribution,
    ActivityPatterns,
    fill_daily_series,
    compute_growth_metrics,
)

from .reporting import (
    ProviderHealthQuery,
    ProviderHealthRecord,
    HealthReport,
    build_health_report,
)

# Persistence
from .models import (
    Provider,
    Booking,
    Review,
    TrustIncident,
    ProviderSuspension,
    Dispute,
    Refund,
    RiskRuleRecord,
)

from .repository import ProviderMetricsRepository
from .service import ProviderHealthService


__all__ = [
    # Enums
    "RiskLevel",
    "IncidentType",
    "KycStatus",
    "DocumentStatus",
    "OnboardingStatus",

    # Input types
    "BookingCounts",
    "ReviewMetrics",
    "IncidentMetrics",
    "SuspensionMetrics",
    "DisputeMetrics",
    "RefundMetrics",
    "VerificationProfile",
    "ProviderMetricsSnapshot",
    "RiskRule",

    # Output types
    "DerivedRates",
    "FactorAssessment",
    "RiskAssessment",

    # Exceptions
    "RiskScoringError",
    "InvalidMetricsSnapshotError",
    "InvalidRiskRuleError",

    # Configuration
    "CRITICAL_RISK_THRESHOLD",
    "HIGH_RISK_THRESHOLD",
    "MEDIUM_RISK_THRESHOLD",
    "RiskLevelThresholds",
    "VerificationRiskConfig",
    "PerformanceRiskConfig",
    "TrustScoreRiskConfig",
    "IncidentRiskConfig",
    "RuleMatchingConfig",
    "RiskScoringConfig",
    "get_default_config",
    "get_conservative_config",
    "get_config_from_env",

    # Rates
    "rate",
    "compute_derived_rates",
    "growth_percentage",
    "compare_adjacent_windows",
    "WindowComparison",

    # Verification
    "VerificationSummary",

    # Assessors
    "BaseRiskAssessor",
    "VerificationRiskAssessor",
    "PerformanceRiskAssessor",
    "TrustScoreRiskAssessor",
    "IncidentRiskAssessor",

    # Rules
    "RiskRuleMatcher",

    # Engine
    "RiskScoringEngine",
    "assess_provider",
    "get_risk_level_from_score",
    "format_risk_summary",

    # Analytics & reporting
    "DailyBookingPoint",
    "GrowthMetrics",
    "PlatformAverages",
    "RiskDistribution",
    "ActivityPatterns",
    "fill_daily_series",
    "compute_growth_metrics",
    "ProviderHealthQuery",
    "ProviderHealthRecord",
    "HealthReport",
    "build_health_report",

    # Persistence
    "Provider",
    "Booking",
    "Review",
    "TrustIncident",
    "ProviderSuspension",
    "Dispute",
    "Refund",
    "RiskRuleRecord",
    "ProviderMetricsRepository",
    "ProviderHealthService",
]


__version__ = "1.0.0"
