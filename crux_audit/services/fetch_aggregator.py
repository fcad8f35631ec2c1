"""
crux_audit/services/fetch_aggregator.py

Parallel Fetch Aggregator: four metrics-source calls per domain
(snapshot + history for phone and desktop) are started together and
reconciled once all of them have settled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from crux_audit.connectors.crux_connector import CrUXTransport
from crux_audit.domain.analysis import AnalysisResult, FormFactor, FormFactorAnalysis
from crux_audit.domain.crux import RawDeviceHistory, RawDeviceSnapshot
from crux_audit.errors import MetricsFetchError
from crux_audit.logging_utils import log_event
from crux_audit.services.metric_extractor import extract_form_factor_analysis

logger = logging.getLogger(__name__)

FORM_FACTORS: tuple[FormFactor, ...] = (FormFactor.PHONE, FormFactor.DESKTOP)


class FetchAggregator:
    """
    Builds one AnalysisResult per domain from a metrics-source transport.
    """

    def __init__(self, transport: CrUXTransport) -> None:
        self._transport = transport

    async def fetch_analysis(self, domain: str) -> AnalysisResult:
        """
        Fetch and extract both form factors for ``domain``.

        Raises:
            MetricsFetchError: if either snapshot is unusable. The error names
                the domain and form factor.
        """
        # Both pairs are scheduled before either is awaited.
        pending = [
            asyncio.ensure_future(self._fetch_pair(domain, form_factor))
            for form_factor in FORM_FACTORS
        ]
        settled = await asyncio.gather(*pending, return_exceptions=True)

        analyses: dict[FormFactor, FormFactorAnalysis] = {}
        for form_factor, outcome in zip(FORM_FACTORS, settled):
            if isinstance(outcome, BaseException):
                raise outcome
            snapshot, history = outcome
            analyses[form_factor] = self._build_analysis(domain, form_factor, snapshot, history)

        return AnalysisResult(
            domain=domain,
            phone=analyses[FormFactor.PHONE],
            desktop=analyses[FormFactor.DESKTOP],
        )

    async def _fetch_pair(
        self,
        domain: str,
        form_factor: FormFactor,
    ) -> tuple[RawDeviceSnapshot, Optional[RawDeviceHistory]]:
        snapshot_outcome, history_outcome = await asyncio.gather(
            self._transport.get_snapshot(domain, form_factor),
            self._transport.get_history(domain, form_factor),
            return_exceptions=True,
        )

        if isinstance(snapshot_outcome, BaseException):
            log_event(
                logger,
                logging.ERROR,
                "snapshot_fetch_failed",
                domain=domain,
                form_factor=form_factor.value,
                error=str(snapshot_outcome),
            )
            raise MetricsFetchError(
                f"Snapshot request failed for {domain} ({form_factor.value}): {snapshot_outcome}",
                domain=domain,
                form_factor=form_factor.value,
                failure_code="snapshot_fetch_failed",
            ) from snapshot_outcome

        history: Optional[RawDeviceHistory] = None
        if isinstance(history_outcome, BaseException):
            log_event(
                logger,
                logging.WARNING,
                "history_fetch_failed",
                domain=domain,
                form_factor=form_factor.value,
                error=str(history_outcome),
            )
        else:
            history = history_outcome

        return snapshot_outcome, history

    @staticmethod
    def _build_analysis(
        domain: str,
        form_factor: FormFactor,
        snapshot: RawDeviceSnapshot,
        history: Optional[RawDeviceHistory],
    ) -> FormFactorAnalysis:
        if not snapshot.record.metrics.has_tracked_metric():
            raise MetricsFetchError(
                f"No metrics found for {domain} ({form_factor.value})",
                domain=domain,
                form_factor=form_factor.value,
                failure_code="missing_metrics",
            )
        return extract_form_factor_analysis(snapshot, history)
