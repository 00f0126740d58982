"""
Provider Risk Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the provider risk engine.

This module defines all enums, dataclasses and errors used
by the risk scoring system. The aggregator produces exactly
the ``ProviderMetricsSnapshot`` shape defined here, which
isolates the engine from storage schema changes.

============================================================
DESIGN PRINCIPLES
============================================================
- Inputs are immutable (frozen dataclasses)
- Enums for discrete values
- "No data" is distinct from zero: an average rating is
  ``None`` when a provider has no reviews
- Clear separation between input and output types

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


# ============================================================
# ENUMS
# ============================================================


class RiskLevel(str, Enum):
    """
    Ordinal risk classification derived from the risk score.

    The score-to-level mapping lives in ``config.RiskLevelThresholds``.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity_order(self) -> int:
        """Numeric ordering for severity comparison."""
        return {"low": 0, "medium": 1, "high": 2, "critical": 3}[self.value]

    @classmethod
    def all_levels(cls) -> List["RiskLevel"]:
        """Return all levels from most to least severe."""
        return [cls.CRITICAL, cls.HIGH, cls.MEDIUM, cls.LOW]


class IncidentType(str, Enum):
    """
    Incident category a risk rule is keyed on.

    OTHER covers manually authored rules; it never auto-matches.
    """

    COMPLAINT = "complaint"
    VIOLATION = "violation"
    SERVICE_QUALITY = "service_quality"
    REVIEW_ABUSE = "review_abuse"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "IncidentType":
        """Parse a stored incident type, mapping unknown strings to OTHER."""
        if value is None:
            return cls.OTHER
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class KycStatus(str, Enum):
    """Provider identity verification status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DocumentStatus(str, Enum):
    """Status of a single verification document."""

    MISSING = "missing"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class OnboardingStatus(str, Enum):
    """Payment account onboarding progress."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# ============================================================
# INPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class BookingCounts:
    """
    Booking counts for one lookback window.

    completed + cancelled may be less than total: bookings in
    other statuses (pending, in progress, paid) are counted in
    total only.
    """

    total: int
    completed: int
    cancelled: int


@dataclass(frozen=True)
class ReviewMetrics:
    """Review volume and average rating (None when there are no reviews)."""

    total: int
    average_rating: Optional[float] = None

    @property
    def has_rating(self) -> bool:
        return self.average_rating is not None


@dataclass(frozen=True)
class IncidentMetrics:
    """Trust incident counts."""

    total: int
    unresolved: int
    recent: int  # created in the last 30 days


@dataclass(frozen=True)
class SuspensionMetrics:
    """Suspension counts. Active = no end date, or end date in the future."""

    total: int
    active: int


@dataclass(frozen=True)
class DisputeMetrics:
    total: int
    unresolved: int


@dataclass(frozen=True)
class RefundMetrics:
    total: int
    total_amount: int  # minor currency units


@dataclass(frozen=True)
class VerificationProfile:
    """
    KYC and payment onboarding state of a provider.

    Only present on a snapshot when the caller tracks
    verification state. ``kyc_age_days`` is captured when the
    snapshot is built so assessment never reads the clock.
    """

    kyc_status: KycStatus
    identity_document_present: bool = False
    business_document_present: bool = False
    payment_account_connected: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    kyc_submitted_at: Optional[datetime] = None
    kyc_age_days: int = 0


@dataclass(frozen=True)
class ProviderMetricsSnapshot:
    """
    Pre-aggregated per-provider metrics, the engine's only input.

    ============================================================
    INVARIANTS
    ============================================================
    - All counts are non-negative integers
    - completed + cancelled <= total for every booking window
    - reviews.average_rating is None iff reviews.total == 0
    - days_since_creation is whole days since the provider
      was created (may be 0 for providers created today)

    ============================================================
    """

    provider_id: str
    trust_score: int

    bookings_all_time: BookingCounts
    bookings_30d: BookingCounts
    bookings_90d: BookingCounts

    reviews: ReviewMetrics
    incidents: IncidentMetrics
    suspensions: SuspensionMetrics
    disputes: DisputeMetrics
    refunds: RefundMetrics

    days_since_creation: int

    verification: Optional[VerificationProfile] = None

    @property
    def total_bookings(self) -> int:
        return self.bookings_all_time.total

    @property
    def has_active_suspension(self) -> bool:
        return self.suspensions.active > 0

    def validation_errors(self) -> List[str]:
        """
        Return every invariant this snapshot violates.

        An empty list means the snapshot is well-formed.
        """
        errors: List[str] = []

        if not isinstance(self.provider_id, str) or not self.provider_id:
            errors.append("provider_id is required")

        if not _is_int(self.trust_score):
            errors.append("trust_score must be an integer")

        if not _is_int(self.days_since_creation):
            errors.append("days_since_creation must be an integer")

        windows = {
            "bookings_all_time": self.bookings_all_time,
            "bookings_30d": self.bookings_30d,
            "bookings_90d": self.bookings_90d,
        }
        for name, window in windows.items():
            if not isinstance(window, BookingCounts):
                errors.append(f"{name} is required")
                continue
            counts_ok = _check_counts(errors, name, total=window.total,
                                      completed=window.completed, cancelled=window.cancelled)
            if counts_ok and window.completed + window.cancelled > window.total:
                errors.append(f"{name}: completed + cancelled exceeds total")

        if not isinstance(self.reviews, ReviewMetrics):
            errors.append("reviews is required")
        elif _check_counts(errors, "reviews", total=self.reviews.total):
            rating = self.reviews.average_rating
            if self.reviews.total == 0 and rating is not None:
                errors.append("reviews: average_rating must be absent when there are no reviews")
            elif self.reviews.total > 0 and rating is None:
                errors.append("reviews: average_rating is required when reviews exist")
            elif rating is not None and not _is_rating(rating):
                errors.append("reviews: average_rating must be between 0 and 5")

        if not isinstance(self.incidents, IncidentMetrics):
            errors.append("incidents is required")
        elif _check_counts(errors, "incidents", total=self.incidents.total,
                           unresolved=self.incidents.unresolved, recent=self.incidents.recent):
            if self.incidents.unresolved > self.incidents.total:
                errors.append("incidents: unresolved exceeds total")
            if self.incidents.recent > self.incidents.total:
                errors.append("incidents: recent exceeds total")

        if not isinstance(self.suspensions, SuspensionMetrics):
            errors.append("suspensions is required")
        elif _check_counts(errors, "suspensions", total=self.suspensions.total,
                           active=self.suspensions.active):
            if self.suspensions.active > self.suspensions.total:
                errors.append("suspensions: active exceeds total")

        if not isinstance(self.disputes, DisputeMetrics):
            errors.append("disputes is required")
        elif _check_counts(errors, "disputes", total=self.disputes.total,
                           unresolved=self.disputes.unresolved):
            if self.disputes.unresolved > self.disputes.total:
                errors.append("disputes: unresolved exceeds total")

        if not isinstance(self.refunds, RefundMetrics):
            errors.append("refunds is required")
        else:
            _check_counts(errors, "refunds", total=self.refunds.total,
                          total_amount=self.refunds.total_amount)

        if self.verification is not None and not isinstance(self.verification, VerificationProfile):
            errors.append("verification must be a VerificationProfile")

        return errors

    @classmethod
    def from_mapping(
        cls,
        row: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> "ProviderMetricsSnapshot":
        """
        Build a snapshot from a loosely typed aggregate row.

        Required keys are never defaulted: a missing key raises
        ``InvalidMetricsSnapshotError``. ``days_since_creation``
        may be supplied directly or derived from ``created_at``
        and ``now``.

        Raises:
            InvalidMetricsSnapshotError: If a required key is missing
        """
        provider_id = row.get("provider_id")

        def require(key: str) -> Any:
            if key not in row or row[key] is None:
                raise InvalidMetricsSnapshotError(
                    f"missing required field '{key}'", provider_id=provider_id
                )
            return row[key]

        def timestamp(key: str, value: Any) -> datetime:
            if not isinstance(value, datetime):
                raise InvalidMetricsSnapshotError(
                    f"'{key}' must be a datetime", provider_id=provider_id
                )
            return value

        now = now or datetime.now(timezone.utc)

        if "days_since_creation" in row and row["days_since_creation"] is not None:
            days = row["days_since_creation"]
        else:
            days = days_between(timestamp("created_at", require("created_at")), now)

        verification = None
        if row.get("kyc_status") is not None:
            try:
                kyc_status = KycStatus(row["kyc_status"])
            except ValueError:
                raise InvalidMetricsSnapshotError(
                    f"unknown kyc_status '{row['kyc_status']}'", provider_id=provider_id
                ) from None
            submitted_at = row.get("kyc_submitted_at")
            if submitted_at is not None:
                submitted_at = timestamp("kyc_submitted_at", submitted_at)
            verification = VerificationProfile(
                kyc_status=kyc_status,
                identity_document_present=bool(row.get("identity_document_present", False)),
                business_document_present=bool(row.get("business_document_present", False)),
                payment_account_connected=bool(row.get("payment_account_connected", False)),
                charges_enabled=bool(row.get("charges_enabled", False)),
                payouts_enabled=bool(row.get("payouts_enabled", False)),
                kyc_submitted_at=submitted_at,
                kyc_age_days=max(0, days_between(submitted_at, now)) if submitted_at else 0,
            )

        avg_rating = row.get("avg_rating")

        return cls(
            provider_id=require("provider_id"),
            trust_score=require("trust_score"),
            bookings_all_time=BookingCounts(
                total=require("total_bookings"),
                completed=require("completed_bookings"),
                cancelled=require("cancelled_bookings"),
            ),
            bookings_30d=BookingCounts(
                total=require("bookings_30d"),
                completed=require("completed_30d"),
                cancelled=require("cancelled_30d"),
            ),
            bookings_90d=BookingCounts(
                total=require("bookings_90d"),
                completed=require("completed_90d"),
                cancelled=require("cancelled_90d"),
            ),
            reviews=ReviewMetrics(
                total=require("total_reviews"),
                average_rating=float(avg_rating) if avg_rating is not None else None,
            ),
            incidents=IncidentMetrics(
                total=require("total_incidents"),
                unresolved=require("unresolved_incidents"),
                recent=require("recent_incidents"),
            ),
            suspensions=SuspensionMetrics(
                total=require("total_suspensions"),
                active=require("active_suspensions"),
            ),
            disputes=DisputeMetrics(
                total=require("total_disputes"),
                unresolved=require("unresolved_disputes"),
            ),
            refunds=RefundMetrics(
                total=require("total_refunds"),
                total_amount=require("total_refund_amount"),
            ),
            days_since_creation=days,
            verification=verification,
        )


@dataclass(frozen=True)
class RiskRule:
    """
    Admin-configured risk rule. Read-only to the engine.
    """

    id: str
    name: str
    incident_type: IncidentType
    severity: str
    trust_score_penalty: int = 0
    auto_suspend: bool = False
    suspend_duration_days: Optional[int] = None
    enabled: bool = True

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "RiskRule":
        """
        Build a rule from a stored row.

        Raises:
            InvalidRiskRuleError: If identity fields are missing or the
                penalty is negative
        """
        for key in ("id", "name", "severity"):
            if not row.get(key):
                raise InvalidRiskRuleError(f"risk rule is missing '{key}'")

        penalty = row.get("trust_score_penalty") or 0
        if not _is_int(penalty):
            raise InvalidRiskRuleError(
                f"risk rule {row['id']} has a non-integer trust score penalty ({penalty!r})"
            )
        if penalty < 0:
            raise InvalidRiskRuleError(
                f"risk rule {row['id']} has a negative trust score penalty ({penalty})"
            )

        return cls(
            id=row["id"],
            name=row["name"],
            incident_type=IncidentType.from_value(row.get("incident_type")),
            severity=row["severity"],
            trust_score_penalty=int(penalty),
            auto_suspend=bool(row.get("auto_suspend", False)),
            suspend_duration_days=row.get("suspend_duration_days"),
            enabled=bool(row.get("enabled", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "incident_type": self.incident_type.value,
            "severity": self.severity,
            "trust_score_penalty": self.trust_score_penalty,
            "auto_suspend": self.auto_suspend,
            "suspend_duration_days": self.suspend_duration_days,
            "enabled": self.enabled,
        }


# ============================================================
# OUTPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class DerivedRates:
    """Percentages derived from booking counts, all windows."""

    completion_rate: float
    cancellation_rate: float
    completion_rate_30d: float
    cancellation_rate_30d: float
    completion_rate_90d: float
    cancellation_rate_90d: float
    booking_frequency: float  # bookings per day since creation

    def to_dict(self) -> Dict[str, float]:
        return {
            "completion_rate": self.completion_rate,
            "cancellation_rate": self.cancellation_rate,
            "completion_rate_30d": self.completion_rate_30d,
            "cancellation_rate_30d": self.cancellation_rate_30d,
            "completion_rate_90d": self.completion_rate_90d,
            "cancellation_rate_90d": self.cancellation_rate_90d,
            "booking_frequency": self.booking_frequency,
        }


@dataclass(frozen=True)
class FactorAssessment:
    """
    Contribution of a single assessor to the overall score.

    Factors and alerts are listed in the order the assessor
    evaluated its conditions.
    """

    points: int = 0
    factors: List[str] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)

    @property
    def triggered(self) -> bool:
        return self.points > 0 or bool(self.factors)


@dataclass(frozen=True)
class RiskAssessment:
    """
    Complete output of the engine for one provider.

    ============================================================
    OUTPUT GUARANTEES
    ============================================================
    - risk_score: non-negative integer
    - risk_level: pure function of risk_score
    - Lists are ordered and reproducible for identical input
    - No timestamps or random identifiers, so repeated
      assessment of the same input compares equal

    ============================================================
    """

    provider_id: str
    risk_score: int
    risk_level: RiskLevel
    risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)
    applicable_rules: List[RiskRule] = field(default_factory=list)
    rates: Optional[DerivedRates] = None

    @property
    def is_high_or_critical(self) -> bool:
        return self.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)

    @property
    def requires_auto_suspension(self) -> bool:
        """True when any applicable rule is configured to auto-suspend."""
        return any(rule.auto_suspend for rule in self.applicable_rules)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "provider_id": self.provider_id,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "risk_factors": list(self.risk_factors),
            "recommendations": list(self.recommendations),
            "alerts": list(self.alerts),
            "applicable_rules": [rule.to_dict() for rule in self.applicable_rules],
            "rates": self.rates.to_dict() if self.rates else None,
        }


# ============================================================
# HELPERS
# ============================================================


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from start to end (floored)."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return math.floor((end - start).total_seconds() / 86400)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_rating(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 5


def _check_counts(errors: List[str], name: str, **counts: Any) -> bool:
    """Append an error for every count that is not a non-negative integer."""
    ok = True
    for key, value in counts.items():
        if not _is_int(value):
            errors.append(f"{name}.{key} must be an integer")
            ok = False
        elif value < 0:
            errors.append(f"{name}.{key} must be non-negative")
            ok = False
    return ok


# ============================================================
# ERROR TYPES
# ============================================================


class RiskScoringError(Exception):
    """Base exception for risk scoring errors."""

    def __init__(self, message: str, provider_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider_id = provider_id


class InvalidMetricsSnapshotError(RiskScoringError):
    """
    Raised when a snapshot is missing required fields or breaks
    an invariant.

    Required counts are never replaced by silent zeros: a
    default could hide a provider's true risk.
    """

    def __init__(self, message: str, provider_id: Optional[str] = None) -> None:
        prefix = f"invalid metrics snapshot for provider {provider_id}" if provider_id else "invalid metrics snapshot"
        super().__init__(f"{prefix}: {message}", provider_id=provider_id)


class InvalidRiskRuleError(RiskScoringError):
    """Raised when a stored risk rule cannot be parsed."""
    pass
