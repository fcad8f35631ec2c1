"""Projections of analysis records that are sent to the narrative model."""

from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict

from crux_audit.domain.analysis import AnalysisResult, FormFactorAnalysis


class _Projection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class MetricSummary(_Projection):
    value: float
    rating: Literal["good", "needs-improvement", "poor"]


class FormFactorSummary(_Projection):
    """Metrics, regressions and collection period. No trend arrays."""

    metrics: Dict[str, MetricSummary]
    regressions: List[str]
    collection_period: str


class SynthesisSummary(_Projection):
    """Reduced view of an AnalysisResult handed to the report synthesizer.

    The narrator has already read the trend series, so they are left out.
    """

    domain: str
    phone: FormFactorSummary
    desktop: FormFactorSummary


class FormFactorTrends(_Projection):
    lcp_trend: List[float]
    cls_trend: List[float]
    inp_trend: List[float]
    dates: List[str]
    current: Dict[str, MetricSummary]


class TrendInput(_Projection):
    """Trend view of an AnalysisResult handed to the narrator."""

    domain: str
    phone: FormFactorTrends
    desktop: FormFactorTrends


class ScoreboardRow(_Projection):
    """One row of the batch comparison scoreboard."""

    audited_url: str
    collection_period: str
    mobile_lcp: float
    mobile_cls: float
    mobile_inp: float
    desktop_lcp: float
    desktop_cls: float
    desktop_inp: float


def _metric_summaries(analysis: FormFactorAnalysis) -> Dict[str, MetricSummary]:
    return {
        name: MetricSummary(value=metric.value, rating=metric.rating)
        for name, metric in analysis.metrics.items()
    }


def _form_factor_summary(analysis: FormFactorAnalysis) -> FormFactorSummary:
    return FormFactorSummary(
        metrics=_metric_summaries(analysis),
        regressions=list(analysis.regressions),
        collection_period=analysis.collection_period,
    )


def _form_factor_trends(analysis: FormFactorAnalysis) -> FormFactorTrends:
    history = analysis.history
    return FormFactorTrends(
        lcp_trend=list(history.lcp_trend),
        cls_trend=list(history.cls_trend),
        inp_trend=list(history.inp_trend),
        dates=list(history.dates),
        current=_metric_summaries(analysis),
    )


def to_synthesis_summary(result: AnalysisResult) -> SynthesisSummary:
    return SynthesisSummary(
        domain=result.domain,
        phone=_form_factor_summary(result.phone),
        desktop=_form_factor_summary(result.desktop),
    )


def to_trend_input(result: AnalysisResult) -> TrendInput:
    return TrendInput(
        domain=result.domain,
        phone=_form_factor_trends(result.phone),
        desktop=_form_factor_trends(result.desktop),
    )


def to_scoreboard_rows(results: List[AnalysisResult]) -> List[ScoreboardRow]:
    return [
        ScoreboardRow(
            audited_url=result.domain,
            collection_period=result.phone.collection_period or "N/A",
            mobile_lcp=result.phone.lcp.value,
            mobile_cls=result.phone.cls.value,
            mobile_inp=result.phone.inp.value,
            desktop_lcp=result.desktop.lcp.value,
            desktop_cls=result.desktop.cls.value,
            desktop_inp=result.desktop.inp.value,
        )
        for result in results
    ]
