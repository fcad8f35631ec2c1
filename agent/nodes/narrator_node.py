"""
agent/nodes/narrator_node.py

Trend Narrator: asks the narrative model for commentary on trend stability.

Never raises. Missing credentials yield a simulation placeholder and any
generation error yields a failure placeholder.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from crux_audit.domain.analysis import AnalysisResult
from crux_audit.logging_utils import log_event
from llm_synthesis.adapter import BaseLLMAdapter
from llm_synthesis.prompt_builder import TrendPromptBuilder
from llm_synthesis.retry import generate_with_retry
from llm_synthesis.schema import to_trend_input
from llm_synthesis.validator import validate_narrative

logger = logging.getLogger(__name__)

SIMULATION_NOTES = "Historian Analysis: Simulation Mode (No AI Key)"
FAILURE_NOTES = "Historian Analysis Failed: the trend narrator could not process the data."


class TrendNarrator:
    def __init__(
        self,
        adapter: Optional[BaseLLMAdapter],
        *,
        temperature: float = 0.3,
        max_retries: int = 1,
    ) -> None:
        self._adapter = adapter
        self._temperature = temperature
        self._max_retries = max_retries
        self._prompt_builder = TrendPromptBuilder()

    @property
    def available(self) -> bool:
        return self._adapter is not None

    async def narrate(self, domain: str, analysis: AnalysisResult) -> str:
        if self._adapter is None:
            return SIMULATION_NOTES

        prompt = self._prompt_builder.build_prompt(to_trend_input(analysis))
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
                stage="narrator",
                domain=domain,
                error=str(error),
            )
            return FAILURE_NOTES
