"""
Provider Risk Engine - Derived Rates and Trends.

============================================================
PURPOSE
============================================================
Converts raw counts into percentages and compares a metric
across two adjacent windows.

============================================================
ZERO-DENOMINATOR POLICY
============================================================
- rate(n, 0) == 0: no data means no penalty
- frequency with no tenure == 0
- growth from a zero previous period is +100% when the
  recent period is nonzero, else 0%

============================================================
"""

from dataclasses import dataclass
from typing import Sequence

from .types import BookingCounts, DerivedRates, ProviderMetricsSnapshot


def rate(numerator: float, denominator: float) -> float:
    """
    Percentage of numerator over denominator.

    Returns 0.0 when the denominator is zero (or negative).
    """
    if denominator <= 0:
        return 0.0
    return (numerator / denominator) * 100


def completion_rate(counts: BookingCounts) -> float:
    return rate(counts.completed, counts.total)


def cancellation_rate(counts: BookingCounts) -> float:
    return rate(counts.cancelled, counts.total)


def booking_frequency(total_bookings: int, days_since_creation: int) -> float:
    """Bookings per day since the provider was created (0 when tenure <= 0)."""
    if days_since_creation <= 0:
        return 0.0
    return total_bookings / days_since_creation


def compute_derived_rates(snapshot: ProviderMetricsSnapshot) -> DerivedRates:
    """Compute completion/cancellation rates for every window plus booking frequency."""
    return DerivedRates(
        completion_rate=completion_rate(snapshot.bookings_all_time),
        cancellation_rate=cancellation_rate(snapshot.bookings_all_time),
        completion_rate_30d=completion_rate(snapshot.bookings_30d),
        cancellation_rate_30d=cancellation_rate(snapshot.bookings_30d),
        completion_rate_90d=completion_rate(snapshot.bookings_90d),
        cancellation_rate_90d=cancellation_rate(snapshot.bookings_90d),
        booking_frequency=booking_frequency(
            snapshot.bookings_all_time.total, snapshot.days_since_creation
        ),
    )


# ============================================================
# TREND / WINDOW COMPARATOR
# ============================================================


def growth_percentage(recent: float, previous: float) -> float:
    """
    Growth of recent over previous, in percent.

    A zero previous period yields +100% when the recent period
    is nonzero, else 0%.
    """
    if previous == 0:
        return 100.0 if recent != 0 else 0.0
    return ((recent - previous) / previous) * 100


@dataclass(frozen=True)
class WindowComparison:
    """A metric summed over two adjacent windows."""

    recent: float
    previous: float

    @property
    def growth_pct(self) -> float:
        return growth_percentage(self.recent, self.previous)


def compare_adjacent_windows(daily_values: Sequence[float], window_days: int = 30) -> WindowComparison:
    """
    Compare the last ``window_days`` of a daily series with the
    ``window_days`` immediately before them.

    The series is ordered oldest first. Days missing from a
    short series count as zero.

    Raises:
        ValueError: If window_days is not positive
    """
    if window_days <= 0:
        raise ValueError(f"window_days must be positive, got {window_days}")

    values = list(daily_values)
    recent = values[-window_days:]
    previous = values[max(0, len(values) - 2 * window_days):max(0, len(values) - window_days)]

    return WindowComparison(recent=sum(recent), previous=sum(previous))
