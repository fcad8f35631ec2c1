"""
crux_audit/domain/crux.py

Pydantic models for the raw percentile-report and history-report payloads.

Only the fields the extractor reads are declared; everything else in the
upstream JSON is ignored.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

TRACKED_METRICS = (
    "largest_contentful_paint",
    "cumulative_layout_shift",
    "interaction_to_next_paint",
)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CrUXDate(_Payload):
    year: int
    month: int
    day: int

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


class CollectionPeriod(_Payload):
    first_date: CrUXDate = Field(alias="firstDate")
    last_date: CrUXDate = Field(alias="lastDate")

    def label(self) -> str:
        return f"{self.first_date.isoformat()} to {self.last_date.isoformat()}"


class Percentiles(_Payload):
    # CLS arrives as a decimal string, LCP/INP as integers.
    p75: Any = None


class HistogramBin(_Payload):
    start: Any = None
    end: Any = None
    density: Optional[float] = None


class MetricValue(_Payload):
    histogram: list[HistogramBin] = Field(default_factory=list)
    percentiles: Optional[Percentiles] = None


class SnapshotMetrics(_Payload):
    largest_contentful_paint: Optional[MetricValue] = None
    cumulative_layout_shift: Optional[MetricValue] = None
    interaction_to_next_paint: Optional[MetricValue] = None

    def has_tracked_metric(self) -> bool:
        return any(getattr(self, name) is not None for name in TRACKED_METRICS)


class RecordKey(_Payload):
    origin: Optional[str] = None
    form_factor: Optional[str] = Field(default=None, alias="formFactor")


class SnapshotRecord(_Payload):
    key: Optional[RecordKey] = None
    metrics: SnapshotMetrics = Field(default_factory=SnapshotMetrics)
    collection_period: Optional[CollectionPeriod] = Field(default=None, alias="collectionPeriod")


class RawDeviceSnapshot(_Payload):
    """Current percentile report for one (origin, form factor) pair."""

    record: SnapshotRecord = Field(default_factory=SnapshotRecord)


class PercentilesTimeseries(_Payload):
    p75s: list[Any] = Field(default_factory=list)


class HistoryMetric(_Payload):
    percentiles_timeseries: Optional[PercentilesTimeseries] = Field(
        default=None, alias="percentilesTimeseries"
    )


class HistoryMetrics(_Payload):
    largest_contentful_paint: Optional[HistoryMetric] = None
    cumulative_layout_shift: Optional[HistoryMetric] = None
    interaction_to_next_paint: Optional[HistoryMetric] = None


class HistoryRecord(_Payload):
    key: Optional[RecordKey] = None
    metrics: HistoryMetrics = Field(default_factory=HistoryMetrics)
    collection_periods: list[CollectionPeriod] = Field(
        default_factory=list, alias="collectionPeriods"
    )


class RawDeviceHistory(_Payload):
    """Weekly p75 time series for one (origin, form factor) pair."""

    record: HistoryRecord
