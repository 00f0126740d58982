"""
Provider Risk Engine - Health Report Service.

Thin async adapter between storage and the pure engine:

    repository (batched aggregates)
        -> snapshots
        -> RiskScoringEngine.assess_batch
        -> filtered, sorted HealthReport

Malformed providers are logged and left out of the report
rather than failing the whole request.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .types import InvalidMetricsSnapshotError, ProviderMetricsSnapshot
from .engine import RiskScoringEngine
from .analytics import ActivityPatterns, compute_growth_metrics, fill_daily_series
from .reporting import (
    HealthReport,
    ProviderHealthQuery,
    ProviderHealthRecord,
    build_health_report,
    filter_records,
)
from .repository import ProviderMetricsRepository

logger = logging.getLogger(__name__)


class ProviderHealthService:
    """Builds the admin provider health report."""

    def __init__(
        self,
        repository: ProviderMetricsRepository,
        engine: Optional[RiskScoringEngine] = None,
    ):
        self._repository = repository
        self._engine = engine or RiskScoringEngine()

    async def build_report(
        self,
        query: Optional[ProviderHealthQuery] = None,
        now: Optional[datetime] = None,
    ) -> HealthReport:
        """
        Assess every provider and summarize the filtered set.

        Args:
            query: Filter and sort parameters (defaults: all, by risk desc)
            now: Reference time for windows and tenure

        Returns:
            HealthReport
        """
        query = query or ProviderHealthQuery()
        now = now or datetime.now(timezone.utc)

        providers = await self._repository.list_providers()
        rules = await self._repository.get_enabled_rules()
        rows = await self._repository.fetch_metric_rows(providers, now)

        skipped: List[str] = []
        snapshots: Dict[str, ProviderMetricsSnapshot] = {}
        for row in rows:
            try:
                snapshot = ProviderMetricsSnapshot.from_mapping(row, now=now)
            except InvalidMetricsSnapshotError as e:
                logger.warning(f"Skipping provider {row.get('provider_id')}: {e}")
                skipped.append(str(row.get("provider_id")))
                continue
            snapshots[snapshot.provider_id] = snapshot

        assessments = self._engine.assess_batch(snapshots.values(), rules, skip_invalid=True)
        skipped.extend(pid for pid in snapshots if pid not in assessments)

        records = [
            ProviderHealthRecord(
                provider_id=provider["id"],
                business_name=provider["business_name"],
                handle=provider["handle"],
                status=provider["status"],
                created_at=provider["created_at"],
                snapshot=snapshots[provider["id"]],
                assessment=assessments[provider["id"]],
            )
            for provider in providers
            if provider["id"] in assessments
        ]

        # Analytics cover the providers left after filtering
        filtered = filter_records(records, query)
        provider_ids = [record.provider_id for record in filtered]

        counts = await self._repository.fetch_daily_booking_counts(provider_ids, now)
        series = fill_daily_series(counts, end_date=now.date())
        hourly, weekdays = await self._repository.fetch_activity_counts(provider_ids, now)

        report = build_health_report(
            records,
            query,
            booking_series=series,
            growth=compute_growth_metrics(
                series, [record.snapshot.days_since_creation for record in filtered]
            ),
            activity=ActivityPatterns.from_counts(hourly, weekdays),
            skipped_providers=skipped,
        )

        logger.info(
            f"Provider health report: {report.total_providers} providers, "
            f"{len(skipped)} skipped"
        )
        return report
