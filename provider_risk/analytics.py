"""
Provider Risk Engine - Platform Analytics.

============================================================
PURPOSE
============================================================
Platform-wide views computed alongside per-provider risk:

- 90-day daily booking series with per-day rates
- Growth metrics (new providers, booking and completion
  growth between adjacent 30-day windows)
- Platform averages over the reported providers
- Risk level distribution
- Activity patterns (peak hours, busiest weekdays)

All functions are pure; the repository supplies the raw
counts.

============================================================
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .types import ProviderMetricsSnapshot, RiskAssessment, RiskLevel
from .config import HIGH_TRUST_SCORE_THRESHOLD
from .rates import compare_adjacent_windows, compute_derived_rates, rate


TREND_WINDOW_DAYS = 90
GROWTH_WINDOW_DAYS = 30
NEW_PROVIDER_DAYS = 30
RECENT_PROVIDER_DAYS = 90

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
NOT_AVAILABLE = "N/A"


# ============================================================
# DAILY BOOKING SERIES
# ============================================================


@dataclass(frozen=True)
class DailyBookingPoint:
    """Booking counts for a single calendar day."""

    day: date
    total: int = 0
    completed: int = 0
    cancelled: int = 0

    @property
    def completion_rate(self) -> float:
        return rate(self.completed, self.total)

    @property
    def cancellation_rate(self) -> float:
        return rate(self.cancelled, self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "total": self.total,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "completion_rate": self.completion_rate,
            "cancellation_rate": self.cancellation_rate,
        }


def fill_daily_series(
    counts_by_day: Mapping[date, DailyBookingPoint],
    end_date: date,
    days: int = TREND_WINDOW_DAYS,
) -> List[DailyBookingPoint]:
    """
    Build a gap-free series of ``days`` points ending at ``end_date``.

    Days with no bookings get a zero point. Ordered oldest first.
    """
    series = []
    for offset in range(days - 1, -1, -1):
        day = end_date - timedelta(days=offset)
        point = counts_by_day.get(day)
        series.append(point if point is not None else DailyBookingPoint(day=day))
    return series


# ============================================================
# GROWTH METRICS
# ============================================================


@dataclass(frozen=True)
class GrowthMetrics:
    new_providers_30d: int
    new_providers_90d: int
    booking_growth_pct: float
    completion_growth: float  # percentage points

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_providers_30d": self.new_providers_30d,
            "new_providers_90d": self.new_providers_90d,
            "booking_growth_pct": self.booking_growth_pct,
            "completion_growth": self.completion_growth,
        }


def compute_growth_metrics(
    series: Sequence[DailyBookingPoint],
    provider_days_active: Iterable[int],
    window_days: int = GROWTH_WINDOW_DAYS,
) -> GrowthMetrics:
    """
    Compare the last ``window_days`` of the series with the window before.

    Booking growth uses the adjacent-window growth percentage.
    Completion growth is the difference between the average daily
    completion rates of the two windows, where days without
    bookings count as 0%.
    """
    days_active = list(provider_days_active)

    bookings = compare_adjacent_windows([p.total for p in series], window_days)
    completion = compare_adjacent_windows([p.completion_rate for p in series], window_days)

    return GrowthMetrics(
        new_providers_30d=sum(1 for d in days_active if d <= NEW_PROVIDER_DAYS),
        new_providers_90d=sum(1 for d in days_active if d <= RECENT_PROVIDER_DAYS),
        booking_growth_pct=bookings.growth_pct,
        completion_growth=(completion.recent - completion.previous) / window_days,
    )


# ============================================================
# PLATFORM AVERAGES
# ============================================================


@dataclass(frozen=True)
class PlatformAverages:
    avg_completion_rate: float
    avg_cancellation_rate: float
    avg_trust_score: float
    total_bookings: int
    total_incidents: int
    high_trust_providers: int

    @classmethod
    def from_snapshots(
        cls,
        snapshots: Sequence[ProviderMetricsSnapshot],
        high_trust_threshold: int = HIGH_TRUST_SCORE_THRESHOLD,
    ) -> "PlatformAverages":
        """Averages are 0 when there are no providers."""
        count = len(snapshots)
        if count == 0:
            return cls(0.0, 0.0, 0.0, 0, 0, 0)

        rates = [compute_derived_rates(s) for s in snapshots]

        return cls(
            avg_completion_rate=sum(r.completion_rate for r in rates) / count,
            avg_cancellation_rate=sum(r.cancellation_rate for r in rates) / count,
            avg_trust_score=sum(s.trust_score for s in snapshots) / count,
            total_bookings=sum(s.total_bookings for s in snapshots),
            total_incidents=sum(s.incidents.total for s in snapshots),
            high_trust_providers=sum(1 for s in snapshots if s.trust_score >= high_trust_threshold),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avg_completion_rate": self.avg_completion_rate,
            "avg_cancellation_rate": self.avg_cancellation_rate,
            "avg_trust_score": self.avg_trust_score,
            "total_bookings": self.total_bookings,
            "total_incidents": self.total_incidents,
            "high_trust_providers": self.high_trust_providers,
        }


# ============================================================
# RISK DISTRIBUTION
# ============================================================


@dataclass(frozen=True)
class RiskDistribution:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def from_assessments(cls, assessments: Iterable[RiskAssessment]) -> "RiskDistribution":
        counts = {level: 0 for level in RiskLevel}
        for assessment in assessments:
            counts[assessment.risk_level] += 1
        return cls(
            critical=counts[RiskLevel.CRITICAL],
            high=counts[RiskLevel.HIGH],
            medium=counts[RiskLevel.MEDIUM],
            low=counts[RiskLevel.LOW],
        )

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


# ============================================================
# ACTIVITY PATTERNS
# ============================================================


def _top_keys(counts: Mapping[int, int], limit: int) -> List[int]:
    # Ties go to the earlier hour / weekday
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [key for key, count in ranked[:limit] if count > 0]


@dataclass(frozen=True)
class ActivityPatterns:
    """Booking activity over the last 30 days."""

    peak_hours: str
    busiest_days: str

    @classmethod
    def from_counts(
        cls,
        hourly_counts: Optional[Mapping[int, int]] = None,
        weekday_counts: Optional[Mapping[int, int]] = None,
    ) -> "ActivityPatterns":
        """
        Args:
            hourly_counts: bookings per hour of day (0-23)
            weekday_counts: bookings per weekday (0 = Sunday)
        """
        hours = _top_keys(hourly_counts or {}, 2)
        weekdays = _top_keys(weekday_counts or {}, 2)

        return cls(
            peak_hours=" & ".join(f"{hour:02d}:00" for hour in hours) or NOT_AVAILABLE,
            busiest_days=", ".join(
                WEEKDAY_NAMES[max(0, min(6, weekday))] for weekday in weekdays
            ) or NOT_AVAILABLE,
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "peak_hours": self.peak_hours,
            "busiest_days": self.busiest_days,
        }
