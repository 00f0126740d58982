"""
Provider Risk Engine - Rule Matcher.

============================================================
PURPOSE
============================================================
Decides which admin-configured risk rules currently apply to
a provider. Matching is keyed on the rule's incident type:

    complaint        -> total incidents > 0
    violation        -> unresolved incidents > 0
    service_quality  -> completion rate < 80
    review_abuse     -> average rating < 3.0
    other            -> never (manual rules only)

============================================================
ABSENT RATINGS
============================================================
A provider without reviews has no average rating. That is
no evidence either way, so review_abuse rules do not match.
No default rating (0 or 5) is ever substituted.

============================================================
"""

from typing import Callable, Dict, Iterable, List, Optional

from .types import (
    DerivedRates,
    IncidentType,
    ProviderMetricsSnapshot,
    RiskRule,
)
from .config import RuleMatchingConfig
from .rates import compute_derived_rates


class RiskRuleMatcher:
    """
    Pure, order-preserving matcher of risk rules against a snapshot.
    """

    def __init__(self, config: Optional[RuleMatchingConfig] = None):
        self.config = config or RuleMatchingConfig()
        self._predicates: Dict[IncidentType, Callable[[ProviderMetricsSnapshot, DerivedRates], bool]] = {
            IncidentType.COMPLAINT: self._has_incidents,
            IncidentType.VIOLATION: self._has_unresolved_incidents,
            IncidentType.SERVICE_QUALITY: self._has_low_completion,
            IncidentType.REVIEW_ABUSE: self._has_low_rating,
        }

    def matches(
        self,
        rule: RiskRule,
        snapshot: ProviderMetricsSnapshot,
        rates: Optional[DerivedRates] = None,
    ) -> bool:
        """Return True if an enabled rule's trigger condition holds."""
        if not rule.enabled:
            return False

        predicate = self._predicates.get(rule.incident_type)
        if predicate is None:
            return False

        return predicate(snapshot, rates or compute_derived_rates(snapshot))

    def applicable_rules(
        self,
        rules: Iterable[RiskRule],
        snapshot: ProviderMetricsSnapshot,
        rates: Optional[DerivedRates] = None,
    ) -> List[RiskRule]:
        """
        Evaluate every rule and return the matches in the given order.

        Disabled or absent rules yield an empty list, never an error.
        """
        rates = rates or compute_derived_rates(snapshot)
        return [rule for rule in rules or [] if self.matches(rule, snapshot, rates)]

    # --------------------------------------------------------
    # PREDICATES
    # --------------------------------------------------------

    def _has_incidents(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> bool:
        return snapshot.incidents.total > 0

    def _has_unresolved_incidents(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> bool:
        return snapshot.incidents.unresolved > 0

    def _has_low_completion(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> bool:
        return rates.completion_rate < self.config.service_quality_completion_floor_pct

    def _has_low_rating(self, snapshot: ProviderMetricsSnapshot, rates: DerivedRates) -> bool:
        rating = snapshot.reviews.average_rating
        if rating is None:
            return False
        return rating < self.config.review_abuse_rating_ceiling
