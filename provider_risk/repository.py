"""
Provider Risk Engine - Metrics Aggregator.

============================================================
PURPOSE
============================================================
Batch-fetches everything the engine needs for N providers in
a constant number of aggregate queries: one per metric
category, grouped by provider id. The engine is then invoked
N times in memory.

============================================================
QUERIES
============================================================
- Providers (identity, trust score, KYC / onboarding state)
- Bookings: all-time, 30-day and 90-day windows
- Reviews: count and average rating of visible reviews
- Trust incidents: total, unresolved, last 30 days
- Suspensions: total, active at ``now``
- Disputes and refunds, attributed through the booking
- Enabled risk rules
- Daily booking counts and hourly / weekday activity

============================================================
MISSING ROWS
============================================================
A provider with no rows in a category has zero counts in it
(there is nothing to count). The average rating stays None.

============================================================
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    BOOKING_CANCELED,
    BOOKING_COMPLETED,
    DISPUTE_RESOLVED,
    Booking,
    Dispute,
    Provider,
    ProviderSuspension,
    Refund,
    Review,
    RiskRuleRecord,
    TrustIncident,
)
from .types import InvalidRiskRuleError, ProviderMetricsSnapshot, RiskRule
from .analytics import DailyBookingPoint

logger = logging.getLogger(__name__)


ZERO_BOOKINGS = {
    "total_bookings": 0, "completed_bookings": 0, "cancelled_bookings": 0,
    "bookings_30d": 0, "completed_30d": 0, "cancelled_30d": 0,
    "bookings_90d": 0, "completed_90d": 0, "cancelled_90d": 0,
}
ZERO_REVIEWS = {"total_reviews": 0, "avg_rating": None}
ZERO_INCIDENTS = {"total_incidents": 0, "unresolved_incidents": 0, "recent_incidents": 0}
ZERO_SUSPENSIONS = {"total_suspensions": 0, "active_suspensions": 0}
ZERO_DISPUTES = {"total_disputes": 0, "unresolved_disputes": 0}
ZERO_REFUNDS = {"total_refunds": 0, "total_refund_amount": 0}


def _naive_utc(moment: datetime) -> datetime:
    """Store columns are naive UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _count_where(condition) -> Any:
    return func.count(case((condition, 1)))


def _by_provider(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {row["provider_id"]: dict(row) for row in rows}


def _as_ints(row: Mapping[str, Any], keys: Iterable[str]) -> Dict[str, int]:
    return {key: int(row[key] or 0) for key in keys}


def provider_row(provider: Mapping[str, Any]) -> Dict[str, Any]:
    """Identity, trust and verification fields of a provider row."""
    return {
        "provider_id": provider["id"],
        "trust_score": int(provider["trust_score"] or 0),
        "created_at": provider["created_at"],
        "kyc_status": provider.get("kyc_status"),
        "identity_document_present": provider.get("identity_document_url") is not None,
        "business_document_present": provider.get("business_document_url") is not None,
        "payment_account_connected": provider.get("stripe_connect_id") is not None,
        "charges_enabled": bool(provider.get("charges_enabled")),
        "payouts_enabled": bool(provider.get("payouts_enabled")),
        "kyc_submitted_at": provider.get("kyc_submitted_at"),
    }


def merge_metric_rows(
    providers: Sequence[Mapping[str, Any]],
    bookings: Mapping[str, Mapping[str, Any]],
    reviews: Mapping[str, Mapping[str, Any]],
    incidents: Mapping[str, Mapping[str, Any]],
    suspensions: Mapping[str, Mapping[str, Any]],
    disputes: Mapping[str, Mapping[str, Any]],
    refunds: Mapping[str, Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Join per-category aggregates back onto the provider list.

    Returns one flat row per provider, in provider order, shaped
    for ``ProviderMetricsSnapshot.from_mapping``.
    """
    rows = []
    for provider in providers:
        provider_id = provider["id"]
        row = provider_row(provider)

        row.update(_as_ints(bookings.get(provider_id, ZERO_BOOKINGS), ZERO_BOOKINGS))

        review = reviews.get(provider_id, ZERO_REVIEWS)
        row["total_reviews"] = int(review["total_reviews"] or 0)
        row["avg_rating"] = (
            float(review["avg_rating"])
            if review["avg_rating"] is not None and row["total_reviews"] > 0
            else None
        )

        row.update(_as_ints(incidents.get(provider_id, ZERO_INCIDENTS), ZERO_INCIDENTS))
        row.update(_as_ints(suspensions.get(provider_id, ZERO_SUSPENSIONS), ZERO_SUSPENSIONS))
        row.update(_as_ints(disputes.get(provider_id, ZERO_DISPUTES), ZERO_DISPUTES))
        row.update(_as_ints(refunds.get(provider_id, ZERO_REFUNDS), ZERO_REFUNDS))

        rows.append(row)
    return rows


class ProviderMetricsRepository:
    """
    Read-only aggregator over the marketplace store.

    ============================================================
    METHODS
    ============================================================
    - list_providers: Base provider list
    - get_enabled_rules: Enabled risk rules, parsed
    - fetch_metric_rows: Flat per-provider aggregate rows
    - fetch_snapshots: Snapshots for every provider
    - fetch_daily_booking_counts: Daily series input
    - fetch_activity_counts: Hourly / weekday activity

    ============================================================
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self._session = session

    async def _fetch(self, stmt, label: str) -> List[Mapping[str, Any]]:
        result = await self._session.execute(stmt)
        rows = list(result.mappings().all())
        logger.debug(f"{label} query returned {len(rows)} rows")
        return rows

    # --------------------------------------------------------
    # PROVIDERS & RULES
    # --------------------------------------------------------

    async def list_providers(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Base provider list, optionally restricted to one status."""
        stmt = select(
            Provider.id,
            Provider.business_name,
            Provider.handle,
            Provider.status,
            Provider.trust_score,
            Provider.created_at,
            Provider.kyc_status,
            Provider.identity_document_url,
            Provider.business_document_url,
            Provider.stripe_connect_id,
            Provider.charges_enabled,
            Provider.payouts_enabled,
            Provider.kyc_submitted_at,
        ).order_by(Provider.created_at)

        if status is not None:
            stmt = stmt.where(Provider.status == status)

        return [dict(row) for row in await self._fetch(stmt, "providers")]

    async def get_enabled_rules(self) -> List[RiskRule]:
        """
        Load enabled risk rules once per request.

        Unparseable rules are logged and left out.
        """
        stmt = (
            select(RiskRuleRecord)
            .where(RiskRuleRecord.enabled.is_(True))
            .order_by(RiskRuleRecord.created_at)
        )
        result = await self._session.execute(stmt)

        rules = []
        for record in result.scalars().all():
            try:
                rules.append(RiskRule.from_mapping(record.to_row()))
            except InvalidRiskRuleError as e:
                logger.warning(f"Ignoring risk rule: {e}")
        return rules

    # --------------------------------------------------------
    # PER-CATEGORY AGGREGATES
    # --------------------------------------------------------

    async def _aggregate_bookings(self, ids: List[str], now: datetime) -> Dict[str, Dict[str, Any]]:
        since_30d = now - timedelta(days=30)
        since_90d = now - timedelta(days=90)
        completed = Booking.status == BOOKING_COMPLETED
        cancelled = Booking.status == BOOKING_CANCELED

        stmt = (
            select(
                Booking.provider_id.label("provider_id"),
                func.count().label("total_bookings"),
                _count_where(completed).label("completed_bookings"),
                _count_where(cancelled).label("cancelled_bookings"),
                _count_where(Booking.created_at >= since_30d).label("bookings_30d"),
                _count_where(completed & (Booking.created_at >= since_30d)).label("completed_30d"),
                _count_where(cancelled & (Booking.created_at >= since_30d)).label("cancelled_30d"),
                _count_where(Booking.created_at >= since_90d).label("bookings_90d"),
                _count_where(completed & (Booking.created_at >= since_90d)).label("completed_90d"),
                _count_where(cancelled & (Booking.created_at >= since_90d)).label("cancelled_90d"),
            )
            .where(Booking.provider_id.in_(ids))
            .group_by(Booking.provider_id)
        )
        return _by_provider(await self._fetch(stmt, "bookings"))

    async def _aggregate_reviews(self, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        stmt = (
            select(
                Review.provider_id.label("provider_id"),
                func.count().label("total_reviews"),
                func.avg(Review.rating).label("avg_rating"),
            )
            .where(Review.provider_id.in_(ids), Review.is_hidden.is_(False))
            .group_by(Review.provider_id)
        )
        return _by_provider(await self._fetch(stmt, "reviews"))

    async def _aggregate_incidents(self, ids: List[str], now: datetime) -> Dict[str, Dict[str, Any]]:
        stmt = (
            select(
                TrustIncident.provider_id.label("provider_id"),
                func.count().label("total_incidents"),
                _count_where(TrustIncident.resolved.is_(False)).label("unresolved_incidents"),
                _count_where(TrustIncident.created_at >= now - timedelta(days=30)).label("recent_incidents"),
            )
            .where(TrustIncident.provider_id.in_(ids))
            .group_by(TrustIncident.provider_id)
        )
        return _by_provider(await self._fetch(stmt, "incidents"))

    async def _aggregate_suspensions(self, ids: List[str], now: datetime) -> Dict[str, Dict[str, Any]]:
        active = or_(ProviderSuspension.end_date.is_(None), ProviderSuspension.end_date > now)
        stmt = (
            select(
                ProviderSuspension.provider_id.label("provider_id"),
                func.count().label("total_suspensions"),
                _count_where(active).label("active_suspensions"),
            )
            .where(ProviderSuspension.provider_id.in_(ids))
            .group_by(ProviderSuspension.provider_id)
        )
        return _by_provider(await self._fetch(stmt, "suspensions"))

    async def _aggregate_disputes(self, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        stmt = (
            select(
                Booking.provider_id.label("provider_id"),
                func.count(Dispute.id.distinct()).label("total_disputes"),
                _count_where(Dispute.status != DISPUTE_RESOLVED).label("unresolved_disputes"),
            )
            .select_from(Dispute)
            .join(Booking, Dispute.booking_id == Booking.id)
            .where(Booking.provider_id.in_(ids))
            .group_by(Booking.provider_id)
        )
        return _by_provider(await self._fetch(stmt, "disputes"))

    async def _aggregate_refunds(self, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        stmt = (
            select(
                Booking.provider_id.label("provider_id"),
                func.count(Refund.id.distinct()).label("total_refunds"),
                func.coalesce(func.sum(Refund.amount), 0).label("total_refund_amount"),
            )
            .select_from(Refund)
            .join(Booking, Refund.booking_id == Booking.id)
            .where(Booking.provider_id.in_(ids))
            .group_by(Booking.provider_id)
        )
        return _by_provider(await self._fetch(stmt, "refunds"))

    # --------------------------------------------------------
    # SNAPSHOTS
    # --------------------------------------------------------

    async def fetch_metric_rows(
        self,
        providers: Sequence[Mapping[str, Any]],
        now: datetime,
    ) -> List[Dict[str, Any]]:
        """
        Aggregate every metric category for the given providers.

        Issues six aggregate queries regardless of provider count,
        and none when the provider list is empty.
        """
        if not providers:
            return []

        ids = [p["id"] for p in providers]
        query_now = _naive_utc(now)

        rows = merge_metric_rows(
            providers,
            bookings=await self._aggregate_bookings(ids, query_now),
            reviews=await self._aggregate_reviews(ids),
            incidents=await self._aggregate_incidents(ids, query_now),
            suspensions=await self._aggregate_suspensions(ids, query_now),
            disputes=await self._aggregate_disputes(ids),
            refunds=await self._aggregate_refunds(ids),
        )
        logger.info(f"Aggregated metrics for {len(rows)} providers")
        return rows

    async def fetch_snapshots(
        self,
        providers: Sequence[Mapping[str, Any]],
        now: datetime,
    ) -> List[ProviderMetricsSnapshot]:
        """
        Snapshots for every provider.

        Raises:
            InvalidMetricsSnapshotError: If any row cannot be shaped
        """
        rows = await self.fetch_metric_rows(providers, now)
        return [ProviderMetricsSnapshot.from_mapping(row, now=now) for row in rows]

    # --------------------------------------------------------
    # ANALYTICS INPUTS
    # --------------------------------------------------------

    async def fetch_daily_booking_counts(
        self,
        provider_ids: Sequence[str],
        now: datetime,
        days: int = 90,
    ) -> Dict[date, DailyBookingPoint]:
        """Per-day booking counts across the given providers."""
        if not provider_ids:
            return {}

        day = func.date_trunc("day", Booking.created_at)
        stmt = (
            select(
                day.label("day"),
                func.count().label("total"),
                _count_where(Booking.status == BOOKING_COMPLETED).label("completed"),
                _count_where(Booking.status == BOOKING_CANCELED).label("cancelled"),
            )
            .where(
                Booking.provider_id.in_(list(provider_ids)),
                Booking.created_at >= _naive_utc(now) - timedelta(days=days),
            )
            .group_by(day)
            .order_by(day)
        )

        counts = {}
        for row in await self._fetch(stmt, "daily bookings"):
            bucket = row["day"]
            bucket = bucket.date() if isinstance(bucket, datetime) else bucket
            counts[bucket] = DailyBookingPoint(
                day=bucket,
                total=int(row["total"]),
                completed=int(row["completed"]),
                cancelled=int(row["cancelled"]),
            )
        return counts

    async def fetch_activity_counts(
        self,
        provider_ids: Sequence[str],
        now: datetime,
        days: int = 30,
    ) -> Tuple[Dict[int, int], Dict[int, int]]:
        """
        Booking counts by hour of day and by weekday (0 = Sunday).

        Returns:
            (hourly_counts, weekday_counts)
        """
        if not provider_ids:
            return {}, {}

        since = _naive_utc(now) - timedelta(days=days)
        in_scope = (
            Booking.provider_id.in_(list(provider_ids)),
            Booking.created_at >= since,
        )

        hour = func.extract("hour", Booking.created_at)
        hourly_stmt = (
            select(hour.label("bucket"), func.count().label("count"))
            .where(*in_scope)
            .group_by(hour)
            .order_by(hour)
        )

        weekday = func.extract("dow", Booking.created_at)
        weekday_stmt = (
            select(weekday.label("bucket"), func.count().label("count"))
            .where(*in_scope)
            .group_by(weekday)
            .order_by(weekday)
        )

        hourly = {
            int(row["bucket"]): int(row["count"])
            for row in await self._fetch(hourly_stmt, "hourly activity")
        }
        weekdays = {
            int(row["bucket"]): int(row["count"])
            for row in await self._fetch(weekday_stmt, "weekday activity")
        }
        return hourly, weekdays
