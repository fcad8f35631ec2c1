"""
agent/nodes/synthesizer_node.py

Report Synthesizer: turns the reduced analysis summary and the narrator's
notes into a Markdown report, and compares a whole batch of results.

Same contract as the narrator: placeholders instead of exceptions. The
comparison always carries a locally rendered scoreboard when the model
cannot supply one, so no audited domain is ever left out.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Optional, Sequence

from crux_audit.domain.analysis import AnalysisResult
from crux_audit.logging_utils import log_event
from llm_synthesis.adapter import BaseLLMAdapter
from llm_synthesis.prompt_builder import (
    SCOREBOARD_HEADER,
    ComparisonPromptBuilder,
    ReportPromptBuilder,
)
from llm_synthesis.retry import generate_with_retry
from llm_synthesis.schema import ScoreboardRow, to_scoreboard_rows, to_synthesis_summary
from llm_synthesis.validator import validate_comparison_report, validate_narrative

logger = logging.getLogger(__name__)

REPORT_FAILURE = "Report Generation Failed: the report synthesizer could not produce a narrative."
COMPARISON_SIMULATION = "## Comparative Analysis\n\n*Comparison unavailable in simulation mode.*"
COMPARISON_FAILURE = "## Comparative Analysis\n\n*Comparison Generation Failed: showing raw scoreboard.*"


def _fmt(value: float) -> str:
    return f"{value:g}"


def render_scoreboard(rows: Sequence[ScoreboardRow]) -> str:
    separator = "|" + "---|" * 8
    lines = [SCOREBOARD_HEADER, separator]
    for row in rows:
        lines.append(
            f"| {row.audited_url} | {row.collection_period} "
            f"| {_fmt(row.mobile_lcp)} | {_fmt(row.mobile_cls)} | {_fmt(row.mobile_inp)} "
            f"| {_fmt(row.desktop_lcp)} | {_fmt(row.desktop_cls)} | {_fmt(row.desktop_inp)} |"
        )
    return "\n".join(lines)


def simulation_report(analysis: AnalysisResult) -> str:
    return (
        "## Simulation Report\n\n"
        f"**Mobile LCP:** {_fmt(analysis.phone.lcp.value)}ms\n"
        f"**Desktop LCP:** {_fmt(analysis.desktop.lcp.value)}ms"
    )


class ReportSynthesizer:
    def __init__(
        self,
        adapter: Optional[BaseLLMAdapter],
        *,
        temperature: float = 0.5,
        max_retries: int = 1,
    ) -> None:
        self._adapter = adapter
        self._temperature = temperature
        self._max_retries = max_retries
        self._report_builder = ReportPromptBuilder()
        self._comparison_builder = ComparisonPromptBuilder()

    @property
    def available(self) -> bool:
        return self._adapter is not None

    async def synthesize(self, domain: str, analysis: AnalysisResult, trend_notes: str) -> str:
        if self._adapter is None:
            return simulation_report(analysis)

        prompt = self._report_builder.build_prompt(to_synthesis_summary(analysis), trend_notes)
        try:
            return await asyncio.to_thread(
                generate_with_retry,
                self._adapter,
                prompt,
                self._temperature,
                validate_narrative,
                self._max_retries,
            )
        except Exception as error:  # noqa: BLE001
            log_event(
                logger,
                logging.WARNING,
                "narrative_generation_failed",
                stage="synthesizer",
                domain=domain,
                error=str(error),
            )
            return REPORT_FAILURE

    async def compare(self, results: Sequence[AnalysisResult]) -> str:
        rows = to_scoreboard_rows(list(results))
        if self._adapter is None:
            return f"{COMPARISON_SIMULATION}\n\n{render_scoreboard(rows)}"

        prompt = self._comparison_builder.build_prompt(rows)
        validate = partial(
            validate_comparison_report,
            domains=[result.domain for result in results],
        )
        try:
            return await asyncio.to_thread(
                generate_with_retry,
                self._adapter,
                prompt,
                self._temperature,
                validate,
                self._max_retries,
            )
        except Exception as error:  # noqa: BLE001
            log_event(
                logger,
                logging.WARNING,
                "narrative_generation_failed",
                stage="comparison",
                domains=len(rows),
                error=str(error),
            )
            return f"{COMPARISON_FAILURE}\n\n{render_scoreboard(rows)}"
