"""
crux_audit/services/metric_extractor.py

Metric Extractor: turns one raw percentile report (plus optional history
report) into a normalized FormFactorAnalysis.

Pure functions only. No I/O, no logging side effects.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

from crux_audit.config import REGRESSION_MIN_POINTS, REGRESSION_THRESHOLD
from crux_audit.domain.analysis import FormFactorAnalysis, MetricAnalysis, Rating, TrendHistory
from crux_audit.domain.crux import (
    CollectionPeriod,
    HistoryMetric,
    MetricValue,
    RawDeviceHistory,
    RawDeviceSnapshot,
)

UNKNOWN_PERIOD = "Unknown"

# (good upper bound, needs-improvement upper bound); both inclusive.
LCP_THRESHOLDS: tuple[float, float] = (2500, 4000)
CLS_THRESHOLDS: tuple[float, float] = (0.1, 0.25)
INP_THRESHOLDS: tuple[float, float] = (200, 500)


def _rate(value: float, thresholds: tuple[float, float]) -> Rating:
    good, needs_improvement = thresholds
    if value <= good:
        return "good"
    if value <= needs_improvement:
        return "needs-improvement"
    return "poor"


def rate_lcp(value: float) -> Rating:
    return _rate(value, LCP_THRESHOLDS)


def rate_cls(value: float) -> Rating:
    return _rate(value, CLS_THRESHOLDS)


def rate_inp(value: float) -> Rating:
    return _rate(value, INP_THRESHOLDS)


def to_number(value: Any) -> Optional[float]:
    """Coerce a raw percentile entry to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _p75(metric: Optional[MetricValue]) -> float:
    if metric is None or metric.percentiles is None:
        return 0.0
    number = to_number(metric.percentiles.p75)
    return number if number is not None else 0.0


def clean_series(values: Iterable[Any]) -> tuple[float, ...]:
    """Keep valid entries in order; missing weeks are dropped, never zero-filled."""
    cleaned: list[float] = []
    for value in values:
        number = to_number(value)
        if number is not None:
            cleaned.append(number)
    return tuple(cleaned)


def extract_trend(history_metric: Optional[HistoryMetric], current_value: float) -> tuple[float, ...]:
    if history_metric is None or history_metric.percentiles_timeseries is None:
        return (current_value,)
    return clean_series(history_metric.percentiles_timeseries.p75s)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def detect_lcp_degradation(lcp_trend: tuple[float, ...]) -> Optional[str]:
    """Flag an LCP series whose last point exceeds its first by more than the threshold."""
    if len(lcp_trend) < REGRESSION_MIN_POINTS:
        return None
    start = lcp_trend[0]
    end = lcp_trend[-1]
    if start <= 0:
        return None
    increase = (end - start) / start
    if increase > REGRESSION_THRESHOLD:
        return f"LCP degraded by {_round_half_up(increase * 100)}%"
    return None


def detect_regressions(
    lcp: MetricAnalysis,
    cls: MetricAnalysis,
    inp: MetricAnalysis,
    lcp_trend: tuple[float, ...],
) -> tuple[str, ...]:
    regressions: list[str] = []
    degradation = detect_lcp_degradation(lcp_trend)
    if degradation:
        regressions.append(degradation)

    if lcp.rating == "poor":
        regressions.append(f"LCP is Poor ({_format_value(lcp.value)}ms)")
    if cls.rating == "poor":
        regressions.append(f"CLS is Poor ({_format_value(cls.value)})")
    if inp.rating == "poor":
        regressions.append(f"INP is Poor ({_format_value(inp.value)}ms)")
    return tuple(regressions)


def format_collection_period(period: Optional[CollectionPeriod]) -> str:
    if period is None:
        return UNKNOWN_PERIOD
    return period.label()


def extract_form_factor_analysis(
    snapshot: RawDeviceSnapshot,
    history: Optional[RawDeviceHistory] = None,
) -> FormFactorAnalysis:
    """
    Build the per-form-factor analysis record.

    Missing metrics read as 0. When ``history`` is absent every trend is a
    single-element series holding the current value.
    """
    metrics = snapshot.record.metrics
    history_metrics = history.record.metrics if history is not None else None

    lcp_value = _p75(metrics.largest_contentful_paint)
    cls_value = _p75(metrics.cumulative_layout_shift)
    inp_value = _p75(metrics.interaction_to_next_paint)

    lcp = MetricAnalysis(value=lcp_value, rating=rate_lcp(lcp_value))
    cls = MetricAnalysis(value=cls_value, rating=rate_cls(cls_value))
    inp = MetricAnalysis(value=inp_value, rating=rate_inp(inp_value))

    lcp_trend = extract_trend(
        history_metrics.largest_contentful_paint if history_metrics else None, lcp_value
    )
    cls_trend = extract_trend(
        history_metrics.cumulative_layout_shift if history_metrics else None, cls_value
    )
    inp_trend = extract_trend(
        history_metrics.interaction_to_next_paint if history_metrics else None, inp_value
    )

    dates: tuple[str, ...] = ()
    if history is not None:
        dates = tuple(period.label() for period in history.record.collection_periods)

    return FormFactorAnalysis(
        lcp=lcp,
        cls=cls,
        inp=inp,
        history=TrendHistory(
            lcp_trend=lcp_trend,
            cls_trend=cls_trend,
            inp_trend=inp_trend,
            dates=dates,
        ),
        regressions=detect_regressions(lcp, cls, inp, lcp_trend),
        collection_period=format_collection_period(snapshot.record.collection_period),
        has_history=history is not None,
    )
