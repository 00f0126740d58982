"""
Provider Risk Engine - Configuration.

============================================================
PURPOSE
============================================================
Defines every threshold and penalty used by the provider
risk engine as a named constant, grouped into immutable
configuration dataclasses.

============================================================
DESIGN PRINCIPLES
============================================================
- No magic numbers in the assessors: everything is here
- Rates are percentages (0-100)
- Penalties are whole points added to the risk score
- Immutable configurations

============================================================
LEVEL THRESHOLDS
============================================================
Closed on the lower bound of each tier:

    score >= 70  -> CRITICAL
    score >= 40  -> HIGH
    score >= 20  -> MEDIUM
    otherwise    -> LOW

============================================================
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from dotenv import load_dotenv

from .types import RiskLevel

logger = logging.getLogger(__name__)


# ============================================================
# NAMED CONSTANTS
# ============================================================

# Risk level thresholds (lower bound, inclusive)
CRITICAL_RISK_THRESHOLD = 70
HIGH_RISK_THRESHOLD = 40
MEDIUM_RISK_THRESHOLD = 20

# Verification
KYC_REJECTION_PENALTY = 50
STALE_KYC_REVIEW_PENALTY = 20
STALE_KYC_REVIEW_DAYS = 30
MISSING_DOCUMENT_PENALTY = 10

# Booking performance
COMPLETION_RATE_FLOOR_PCT = 80.0
LOW_COMPLETION_PENALTY = 15
CANCELLATION_RATE_CEILING_PCT = 20.0
HIGH_CANCELLATION_PENALTY = 10
MIN_BOOKINGS_FOR_RATES = 5
LIMITED_HISTORY_PENALTY = 10
SEVERE_COMPLETION_RATE_PCT = 50.0

# Trust score tiers
LOW_TRUST_SCORE_THRESHOLD = 50
LOW_TRUST_SCORE_PENALTY = 20
MODERATE_TRUST_SCORE_THRESHOLD = 75
MODERATE_TRUST_SCORE_PENALTY = 10
HIGH_TRUST_SCORE_THRESHOLD = 80

# Trust incidents
PER_INCIDENT_PENALTY = 5
INCIDENT_PENALTY_CAP = 20
MULTIPLE_UNRESOLVED_ALERT_COUNT = 3
HIGH_INCIDENT_FREQUENCY_ALERT_COUNT = 5

# Rule matching
SERVICE_QUALITY_COMPLETION_FLOOR_PCT = 80.0
REVIEW_ABUSE_RATING_CEILING = 3.0


# ============================================================
# RISK LEVEL THRESHOLDS
# ============================================================


@dataclass(frozen=True)
class RiskLevelThresholds:
    """
    Ascending score thresholds for the risk levels.

    Each threshold is the lowest score of its tier.
    """

    medium: int = MEDIUM_RISK_THRESHOLD
    high: int = HIGH_RISK_THRESHOLD
    critical: int = CRITICAL_RISK_THRESHOLD

    def classify(self, score: int) -> RiskLevel:
        """
        Map a risk score to its level.

        Args:
            score: Accumulated risk points

        Returns:
            RiskLevel for the score
        """
        if score >= self.critical:
            return RiskLevel.CRITICAL
        elif score >= self.high:
            return RiskLevel.HIGH
        elif score >= self.medium:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medium": self.medium,
            "high": self.high,
            "critical": self.critical,
        }


# ============================================================
# VERIFICATION RISK CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class VerificationRiskConfig:
    """
    Configuration for KYC / verification risk.

    ============================================================
    THRESHOLD RATIONALE
    ============================================================
    - A rejected KYC submission is a distinct, severe signal
    - A submission waiting for review for more than 30 days
      means the provider trades unverified
    - Each missing document adds a fixed penalty

    ============================================================
    """

    rejection_penalty: int = KYC_REJECTION_PENALTY
    stale_review_penalty: int = STALE_KYC_REVIEW_PENALTY
    stale_review_days: int = STALE_KYC_REVIEW_DAYS
    missing_document_penalty: int = MISSING_DOCUMENT_PENALTY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rejection_penalty": self.rejection_penalty,
            "stale_review_penalty": self.stale_review_penalty,
            "stale_review_days": self.stale_review_days,
            "missing_document_penalty": self.missing_document_penalty,
        }


# ============================================================
# PERFORMANCE RISK CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class PerformanceRiskConfig:
    """
    Configuration for booking performance risk.

    ============================================================
    THRESHOLD RATIONALE
    ============================================================
    Completion rate:
    - Penalty below 80%
    - Alert below 50% (only once the provider has bookings)

    Cancellation rate:
    - Penalty above 20%, gated on at least 5 bookings so a
      single cancelled booking cannot trigger it

    Booking history:
    - Fewer than 5 bookings is too little data to trust rates

    ============================================================
    """

    completion_rate_floor_pct: float = COMPLETION_RATE_FLOOR_PCT
    low_completion_penalty: int = LOW_COMPLETION_PENALTY
    cancellation_rate_ceiling_pct: float = CANCELLATION_RATE_CEILING_PCT
    high_cancellation_penalty: int = HIGH_CANCELLATION_PENALTY
    min_bookings_for_rates: int = MIN_BOOKINGS_FOR_RATES
    limited_history_penalty: int = LIMITED_HISTORY_PENALTY
    severe_completion_rate_pct: float = SEVERE_COMPLETION_RATE_PCT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completion_rate_floor_pct": self.completion_rate_floor_pct,
            "low_completion_penalty": self.low_completion_penalty,
            "cancellation_rate_ceiling_pct": self.cancellation_rate_ceiling_pct,
            "high_cancellation_penalty": self.high_cancellation_penalty,
            "min_bookings_for_rates": self.min_bookings_for_rates,
            "limited_history_penalty": self.limited_history_penalty,
            "severe_completion_rate_pct": self.severe_completion_rate_pct,
        }


# ============================================================
# TRUST SCORE RISK CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class TrustScoreRiskConfig:
    """
    Configuration for trust score tiering.

    Tiers are mutually exclusive: only the lowest applicable
    tier adds its penalty.
    """

    low_threshold: int = LOW_TRUST_SCORE_THRESHOLD
    low_penalty: int = LOW_TRUST_SCORE_PENALTY
    moderate_threshold: int = MODERATE_TRUST_SCORE_THRESHOLD
    moderate_penalty: int = MODERATE_TRUST_SCORE_PENALTY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "low_threshold": self.low_threshold,
            "low_penalty": self.low_penalty,
            "moderate_threshold": self.moderate_threshold,
            "moderate_penalty": self.moderate_penalty,
        }


# ============================================================
# INCIDENT RISK CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class IncidentRiskConfig:
    """
    Configuration for trust incident risk.

    Unresolved incidents add a capped linear penalty:
        min(cap, unresolved * per_incident_penalty)
    """

    per_incident_penalty: int = PER_INCIDENT_PENALTY
    penalty_cap: int = INCIDENT_PENALTY_CAP
    multiple_unresolved_alert_count: int = MULTIPLE_UNRESOLVED_ALERT_COUNT
    high_frequency_alert_count: int = HIGH_INCIDENT_FREQUENCY_ALERT_COUNT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "per_incident_penalty": self.per_incident_penalty,
            "penalty_cap": self.penalty_cap,
            "multiple_unresolved_alert_count": self.multiple_unresolved_alert_count,
            "high_frequency_alert_count": self.high_frequency_alert_count,
        }


# ============================================================
# RULE MATCHING CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RuleMatchingConfig:
    """Trigger thresholds for incident-type keyed risk rules."""

    service_quality_completion_floor_pct: float = SERVICE_QUALITY_COMPLETION_FLOOR_PCT
    review_abuse_rating_ceiling: float = REVIEW_ABUSE_RATING_CEILING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_quality_completion_floor_pct": self.service_quality_completion_floor_pct,
            "review_abuse_rating_ceiling": self.review_abuse_rating_ceiling,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskScoringConfig:
    """
    Master configuration for the provider risk engine.
    """

    levels: RiskLevelThresholds = field(default_factory=RiskLevelThresholds)
    verification: VerificationRiskConfig = field(default_factory=VerificationRiskConfig)
    performance: PerformanceRiskConfig = field(default_factory=PerformanceRiskConfig)
    trust: TrustScoreRiskConfig = field(default_factory=TrustScoreRiskConfig)
    incidents: IncidentRiskConfig = field(default_factory=IncidentRiskConfig)
    rules: RuleMatchingConfig = field(default_factory=RuleMatchingConfig)

    engine_version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "levels": self.levels.to_dict(),
            "verification": self.verification.to_dict(),
            "performance": self.performance.to_dict(),
            "trust": self.trust.to_dict(),
            "incidents": self.incidents.to_dict(),
            "rules": self.rules.to_dict(),
            "engine_version": self.engine_version,
        }


# ============================================================
# PRESETS
# ============================================================


def get_default_config() -> RiskScoringConfig:
    """Return the default provider risk configuration."""
    return RiskScoringConfig()


def get_conservative_config() -> RiskScoringConfig:
    """
    Return a more conservative configuration.

    Lower level thresholds and stricter booking gates =
    earlier escalation.
    """
    return RiskScoringConfig(
        levels=RiskLevelThresholds(medium=15, high=30, critical=55),
        performance=PerformanceRiskConfig(
            completion_rate_floor_pct=85.0,
            cancellation_rate_ceiling_pct=15.0,
        ),
        incidents=IncidentRiskConfig(
            per_incident_penalty=10,
            penalty_cap=30,
        ),
    )


PROFILES = {
    "default": get_default_config,
    "conservative": get_conservative_config,
}


def get_config_from_env() -> RiskScoringConfig:
    """
    Select a configuration preset from ``RISK_SCORING_PROFILE``.

    Unknown profile names fall back to the default preset.
    """
    load_dotenv()

    profile = os.getenv("RISK_SCORING_PROFILE", "default").strip().lower()
    factory = PROFILES.get(profile)

    if factory is None:
        logger.warning(f"Unknown RISK_SCORING_PROFILE '{profile}', using default")
        factory = get_default_config

    return factory()
