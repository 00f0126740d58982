"""
Shared fixtures for provider risk tests.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest

from provider_risk import (
    BookingCounts,
    DisputeMetrics,
    IncidentMetrics,
    KycStatus,
    ProviderMetricsSnapshot,
    RefundMetrics,
    ReviewMetrics,
    SuspensionMetrics,
    VerificationProfile,
)


NOW = datetime(2025, 6, 30, 12, 0, tzinfo=timezone.utc)


def build_snapshot(
    provider_id: str = "prov-1",
    trust_score: int = 90,
    total: int = 10,
    completed: int = 9,
    cancelled: int = 1,
    reviews: int = 0,
    avg_rating: Optional[float] = None,
    incidents: int = 0,
    unresolved: int = 0,
    recent: int = 0,
    suspensions: int = 0,
    active_suspensions: int = 0,
    disputes: int = 0,
    unresolved_disputes: int = 0,
    days: int = 120,
    verification: Optional[VerificationProfile] = None,
) -> ProviderMetricsSnapshot:
    """Snapshot with identical counts in every booking window."""
    counts = BookingCounts(total=total, completed=completed, cancelled=cancelled)
    return ProviderMetricsSnapshot(
        provider_id=provider_id,
        trust_score=trust_score,
        bookings_all_time=counts,
        bookings_30d=counts,
        bookings_90d=counts,
        reviews=ReviewMetrics(total=reviews, average_rating=avg_rating),
        incidents=IncidentMetrics(total=incidents, unresolved=unresolved, recent=recent),
        suspensions=SuspensionMetrics(total=suspensions, active=active_suspensions),
        disputes=DisputeMetrics(total=disputes, unresolved=unresolved_disputes),
        refunds=RefundMetrics(total=0, total_amount=0),
        days_since_creation=days,
        verification=verification,
    )


def build_profile(**overrides: Any) -> VerificationProfile:
    """Fully verified profile unless overridden."""
    values: Dict[str, Any] = {
        "kyc_status": KycStatus.VERIFIED,
        "identity_document_present": True,
        "business_document_present": True,
        "payment_account_connected": True,
        "charges_enabled": True,
        "payouts_enabled": True,
    }
    values.update(overrides)
    return VerificationProfile(**values)


def build_row(**overrides: Any) -> Dict[str, Any]:
    """Flat aggregate row as produced by the metrics aggregator."""
    row: Dict[str, Any] = {
        "provider_id": "prov-1",
        "trust_score": 90,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "total_bookings": 10, "completed_bookings": 9, "cancelled_bookings": 1,
        "bookings_30d": 4, "completed_30d": 4, "cancelled_30d": 0,
        "bookings_90d": 8, "completed_90d": 7, "cancelled_90d": 1,
        "total_reviews": 0, "avg_rating": None,
        "total_incidents": 0, "unresolved_incidents": 0, "recent_incidents": 0,
        "total_suspensions": 0, "active_suspensions": 0,
        "total_disputes": 0, "unresolved_disputes": 0,
        "total_refunds": 0, "total_refund_amount": 0,
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_snapshot():
    return build_snapshot


@pytest.fixture
def make_profile():
    return build_profile


@pytest.fixture
def make_row():
    return build_row
