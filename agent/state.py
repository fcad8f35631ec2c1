"""
agent/state.py

Workflow state for the CrUX audit agent: the machine states, the session
memory shared between stages of one cycle, and the per-run result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from typing_extensions import TypedDict

from crux_audit.domain.analysis import AnalysisResult
from crux_audit.logging_utils import LogEntry


class WorkflowState(str, Enum):
    """Exactly one state is active at a time."""

    IDLE = "Idle"
    FETCHING = "Fetching"
    NARRATING = "Narrating"
    SYNTHESIZING = "Synthesizing"
    COMPLETE = "Complete"
    FAILED = "Failed"


class FailureKind(str, Enum):
    """Why a run ended in Failed: fix the input, or retry."""

    CONFIGURATION = "configuration"
    PROCESSING = "processing"


@dataclass
class SessionMemory:
    """Most recent stage outputs; overwritten every cycle."""

    last_domain: str = ""
    last_analysis: Optional[AnalysisResult] = None
    last_trend_notes: Optional[str] = None
    last_report: str = ""


@dataclass(frozen=True)
class DomainReport:
    domain: str
    analysis: AnalysisResult
    trend_notes: str
    report: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "trend_notes": self.trend_notes,
            "report": self.report,
            "analysis": self.analysis.to_dict(),
        }


@dataclass
class AuditRunResult:
    state: WorkflowState
    failure_kind: Optional[FailureKind] = None
    error: Optional[str] = None
    reports: list[DomainReport] = field(default_factory=list)
    comparison: Optional[str] = None
    final_report: str = ""
    logs: list[LogEntry] = field(default_factory=list)

    @property
    def results(self) -> list[AnalysisResult]:
        return [report.analysis for report in self.reports]

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "error": self.error,
            "reports": [report.to_dict() for report in self.reports],
            "comparison": self.comparison,
            "final_report": self.final_report,
            "logs": [entry.to_dict() for entry in self.logs],
        }


class DomainCycleState(TypedDict, total=False):
    """LangGraph state for one Fetch -> Narrate -> Synthesize cycle."""

    domain: str
    analysis: Optional[AnalysisResult]
    trend_notes: Optional[str]
    report: Optional[str]
