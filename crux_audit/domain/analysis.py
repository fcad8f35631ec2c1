"""
crux_audit/domain/analysis.py

Normalized analysis records passed between workflow stages.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Literal

Rating = Literal["good", "needs-improvement", "poor"]


class FormFactor(str, Enum):
    """
    Device class a report is segmented by.
    """

    PHONE = "PHONE"
    DESKTOP = "DESKTOP"


@dataclass(frozen=True)
class MetricAnalysis:
    """
    One metric's p75 value and its qualitative rating.
    """

    value: float
    rating: Rating


@dataclass(frozen=True)
class TrendHistory:
    """
    Per-metric p75 series plus the date-range label of each history window.
    """

    lcp_trend: tuple[float, ...]
    cls_trend: tuple[float, ...]
    inp_trend: tuple[float, ...]
    dates: tuple[str, ...] = ()


@dataclass(frozen=True)
class FormFactorAnalysis:
    """
    Aggregate for one (domain, form factor) pair.
    """

    lcp: MetricAnalysis
    cls: MetricAnalysis
    inp: MetricAnalysis
    history: TrendHistory
    regressions: tuple[str, ...] = ()
    collection_period: str = "Unknown"
    has_history: bool = False

    @property
    def metrics(self) -> dict[str, MetricAnalysis]:
        return {"lcp": self.lcp, "cls": self.cls, "inp": self.inp}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AnalysisResult:
    """
    Per-domain aggregate for both form factors.
    """

    domain: str
    phone: FormFactorAnalysis
    desktop: FormFactorAnalysis

    def for_form_factor(self, form_factor: FormFactor) -> FormFactorAnalysis:
        return self.phone if form_factor is FormFactor.PHONE else self.desktop

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "phone": self.phone.to_dict(),
            "desktop": self.desktop.to_dict(),
        }
