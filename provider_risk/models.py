"""
Provider Risk Engine - Marketplace ORM Models.

============================================================
PURPOSE
============================================================
Read-side mapping of the marketplace tables the metrics
aggregator queries. The risk engine itself never touches
these; ProviderMetricsRepository turns them into snapshots.

============================================================
MODELS
============================================================
1. Provider: seller entity, trust score, KYC and payment
   onboarding state
2. Booking: status + creation time drive all booking windows
3. Review: rating per booking
4. TrustIncident: resolved flag, creation time
5. ProviderSuspension: active while end_date is null or future
6. Dispute / Refund: attributed to a provider via the booking
7. RiskRuleRecord: admin-configured risk rules

============================================================
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


BOOKING_COMPLETED = "completed"
BOOKING_CANCELED = "canceled"
DISPUTE_RESOLVED = "resolved"


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the store's timestamp columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================
# PROVIDERS
# ============================================================


class Provider(Base):
    """
    Marketplace seller.

    KYC documents are tracked by URL: a null URL is a missing
    document. A payment account is connected once
    stripe_connect_id is set.
    """

    __tablename__ = "providers"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    handle: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    trust_level: Mapped[str] = mapped_column(String(20), nullable=False, default="bronze")
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Payment onboarding
    stripe_connect_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    charges_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # KYC
    kyc_status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    identity_document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    business_document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    kyc_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    kyc_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, handle={self.handle}, status={self.status})>"


# ============================================================
# BOOKINGS & REVIEWS
# ============================================================


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    provider_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("providers.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    price_at_booking: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_bookings_provider_created", "provider_id", "created_at"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("providers.id"), nullable=False, index=True
    )
    booking_id: Mapped[str] = mapped_column(String(255), ForeignKey("bookings.id"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Hidden by moderation; excluded from counts and averages
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


# ============================================================
# TRUST & SAFETY
# ============================================================


class TrustIncident(Base):
    __tablename__ = "trust_incidents"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("providers.id"), nullable=False, index=True
    )
    incident_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    trust_score_impact: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class ProviderSuspension(Base):
    """Suspension history. A null end_date is an open-ended suspension."""

    __tablename__ = "provider_suspensions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("providers.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class Dispute(Base):
    __tablename__ = "disputes"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    booking_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("bookings.id"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class Refund(Base):
    __tablename__ = "refunds"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    booking_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("bookings.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


# ============================================================
# RISK RULES
# ============================================================


class RiskRuleRecord(Base):
    """Admin-managed risk rule. The engine only ever reads these."""

    __tablename__ = "risk_rules"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    incident_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    trust_score_penalty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auto_suspend: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspend_duration_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "incident_type": self.incident_type,
            "severity": self.severity,
            "trust_score_penalty": self.trust_score_penalty,
            "auto_suspend": self.auto_suspend,
            "suspend_duration_days": self.suspend_duration_days,
            "enabled": self.enabled,
        }
