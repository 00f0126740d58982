"""
Provider Risk Engine - Health Report.

============================================================
PURPOSE
============================================================
Presentation-level view over assessed providers:

1. ProviderHealthQuery validates the admin's filter/sort
   parameters
2. Records are joined back to provider identity
3. Filters: risk level, provider status, incident category
4. Stable sort by any numeric/ordinal field
5. Platform analytics over the filtered providers

The engine never sees any of this; it only scores.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from .types import ProviderMetricsSnapshot, RiskAssessment, RiskLevel
from .analytics import (
    ActivityPatterns,
    DailyBookingPoint,
    GrowthMetrics,
    PlatformAverages,
    RiskDistribution,
)
from .verification import VerificationSummary


ALL = "all"


# =============================================================
# QUERY SCHEMA
# =============================================================

class SortField(str, Enum):
    BOOKINGS = "bookings"
    CANCELLATIONS = "cancellations"
    REVIEWS = "reviews"
    TRUST = "trust"
    RISK = "risk"
    CREATED = "created"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class IncidentFilter(str, Enum):
    ALL = "all"
    UNRESOLVED = "unresolved"
    RECENT = "recent"
    NONE = "none"


class ProviderHealthQuery(BaseModel):
    """Filter and sort parameters for the provider health report."""
    sort: SortField = SortField.RISK
    order: SortOrder = SortOrder.DESC
    risk: str = Field(default=ALL, description="'all' or a risk level")
    status: str = Field(default=ALL, description="'all' or a provider status")
    incidents: IncidentFilter = IncidentFilter.ALL

    @field_validator("risk")
    @classmethod
    def _check_risk(cls, value: str) -> str:
        value = value.strip().lower()
        if value != ALL and value not in {level.value for level in RiskLevel}:
            raise ValueError(f"unknown risk level '{value}'")
        return value

    @field_validator("status")
    @classmethod
    def _check_status(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("status filter must not be empty")
        return value


# =============================================================
# RECORDS
# =============================================================

@dataclass(frozen=True)
class ProviderHealthRecord:
    """An assessment joined back to its provider's identity."""

    provider_id: str
    business_name: str
    handle: str
    status: str
    created_at: datetime
    snapshot: ProviderMetricsSnapshot
    assessment: RiskAssessment

    def sort_value(self, sort: SortField) -> Any:
        if sort == SortField.BOOKINGS:
            return self.snapshot.total_bookings
        if sort == SortField.CANCELLATIONS:
            return self.snapshot.bookings_all_time.cancelled
        if sort == SortField.REVIEWS:
            return self.snapshot.reviews.total
        if sort == SortField.TRUST:
            return self.snapshot.trust_score
        if sort == SortField.RISK:
            return self.assessment.risk_score
        return self.created_at

    def to_dict(self) -> Dict[str, Any]:
        s = self.snapshot
        data = {
            "id": self.provider_id,
            "business_name": self.business_name,
            "handle": self.handle,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "trust_score": s.trust_score,
            "total_bookings": s.bookings_all_time.total,
            "completed_bookings": s.bookings_all_time.completed,
            "cancelled_bookings": s.bookings_all_time.cancelled,
            "bookings_30d": s.bookings_30d.total,
            "bookings_90d": s.bookings_90d.total,
            "total_reviews": s.reviews.total,
            "avg_rating": s.reviews.average_rating,
            "total_incidents": s.incidents.total,
            "unresolved_incidents": s.incidents.unresolved,
            "recent_incidents": s.incidents.recent,
            "total_suspensions": s.suspensions.total,
            "active_suspensions": s.suspensions.active,
            "total_disputes": s.disputes.total,
            "unresolved_disputes": s.disputes.unresolved,
            "total_refunds": s.refunds.total,
            "total_refund_amount": s.refunds.total_amount,
            "days_active": s.days_since_creation,
            "has_active_suspension": s.has_active_suspension,
            "has_unresolved_incidents": s.incidents.unresolved > 0,
            "has_recent_incidents": s.incidents.recent > 0,
        }
        data.update(self.assessment.to_dict())
        if s.verification is not None:
            data["verification"] = VerificationSummary.from_profile(s.verification).to_dict()
        return data


def filter_records(
    records: Sequence[ProviderHealthRecord],
    query: ProviderHealthQuery,
) -> List[ProviderHealthRecord]:
    """Apply the risk, status and incident filters in that order."""
    result = list(records)

    if query.risk != ALL:
        result = [r for r in result if r.assessment.risk_level.value == query.risk]

    if query.status != ALL:
        result = [r for r in result if r.status == query.status]

    if query.incidents == IncidentFilter.UNRESOLVED:
        result = [r for r in result if r.snapshot.incidents.unresolved > 0]
    elif query.incidents == IncidentFilter.RECENT:
        result = [r for r in result if r.snapshot.incidents.recent > 0]
    elif query.incidents == IncidentFilter.NONE:
        result = [r for r in result if r.snapshot.incidents.total == 0]

    return result


def sort_records(
    records: Sequence[ProviderHealthRecord],
    sort: SortField = SortField.RISK,
    order: SortOrder = SortOrder.DESC,
) -> List[ProviderHealthRecord]:
    """Stable sort; equal keys keep their input order in both directions."""
    return sorted(
        records,
        key=lambda r: r.sort_value(sort),
        reverse=order == SortOrder.DESC,
    )


# =============================================================
# REPORT
# =============================================================

@dataclass(frozen=True)
class HealthReport:
    providers: List[ProviderHealthRecord]
    platform_averages: PlatformAverages
    growth: GrowthMetrics
    booking_series: List[DailyBookingPoint]
    activity: ActivityPatterns
    risk_distribution: RiskDistribution
    total_providers: int
    active_providers: int
    query: Optional[ProviderHealthQuery] = None
    skipped_providers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "providers": [record.to_dict() for record in self.providers],
            "analytics": {
                "platform_averages": self.platform_averages.to_dict(),
                "growth_metrics": self.growth.to_dict(),
                "trends": {
                    "booking_time_series": [point.to_dict() for point in self.booking_series],
                },
                "activity_patterns": self.activity.to_dict(),
                "summary": {
                    "total_providers": self.total_providers,
                    "active_providers": self.active_providers,
                    "risk_distribution": self.risk_distribution.to_dict(),
                },
            },
            "skipped_providers": list(self.skipped_providers),
        }


def build_health_report(
    records: Sequence[ProviderHealthRecord],
    query: ProviderHealthQuery,
    booking_series: Sequence[DailyBookingPoint],
    growth: GrowthMetrics,
    activity: ActivityPatterns,
    skipped_providers: Sequence[str] = (),
) -> HealthReport:
    """
    Filter and sort records, then summarize the filtered set.

    Platform averages and the risk distribution describe only
    the providers that survive the filters.
    """
    filtered = sort_records(filter_records(records, query), query.sort, query.order)
    snapshots = [r.snapshot for r in filtered]

    return HealthReport(
        providers=filtered,
        platform_averages=PlatformAverages.from_snapshots(snapshots),
        growth=growth,
        booking_series=list(booking_series),
        activity=activity,
        risk_distribution=RiskDistribution.from_assessments(r.assessment for r in filtered),
        total_providers=len(filtered),
        active_providers=sum(1 for s in snapshots if s.total_bookings > 0),
        query=query,
        skipped_providers=list(skipped_providers),
    )
