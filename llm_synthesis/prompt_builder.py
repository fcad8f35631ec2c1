"""Structured prompt builders for trend narration, report synthesis and batch comparison."""

import json
from typing import List, Union

from pydantic import BaseModel

from crux_audit.config import NARRATOR_JUMP_THRESHOLD
from llm_synthesis.schema import ScoreboardRow, SynthesisSummary, TrendInput

_SECTION_TEMPLATE = """\
## {title}
```json
{data}
```
"""

SCOREBOARD_HEADER = (
    "| URL | Date Range | Mobile LCP | Mobile CLS | Mobile INP "
    "| Desktop LCP | Desktop CLS | Desktop INP |"
)

_NARRATOR_INSTRUCTIONS = """\
You are the CrUX Historian Agent.
Your goal is to detect anomalies and regressions in time-series data.

STRICT RULES:
- Use ONLY the data provided below. Do not infer beyond what is given.
- Focus ONLY on the timeline; do not give recommendations.
"""

_SYNTHESIS_INSTRUCTIONS = """\
You are the CrUX Interpretation Agent.
You are the final voice of the system. Synthesize the raw data and the
Historian's notes into a strategic report.
"""

_COMPARISON_INSTRUCTIONS = """\
You are a precise data analyst creating a performance scorecard for a
batch of {count} websites.
"""


def _section(title: str, payload: Union[BaseModel, List[BaseModel], str]) -> str:
    if isinstance(payload, str):
        body = json.dumps(payload)
    elif isinstance(payload, list):
        body = json.dumps([item.model_dump() for item in payload], indent=2, default=str)
    else:
        body = payload.model_dump_json(indent=2)
    return _SECTION_TEMPLATE.format(title=title, data=body)


class TrendPromptBuilder:
    """Builds the narrator prompt from the trend view of one domain."""

    def build_prompt(self, trend_input: TrendInput) -> str:
        jump_percent = int(round(NARRATOR_JUMP_THRESHOLD * 100))
        return (
            f"{_NARRATOR_INSTRUCTIONS}\n"
            f"**Target:** {trend_input.domain}\n\n"
            f"# PROVIDED DATA\n\n"
            f"{_section('Phone Trends', trend_input.phone)}\n"
            f"{_section('Desktop Trends', trend_input.desktop)}\n"
            f"# TASK\n\n"
            f"1. Analyze the trend stability of LCP, CLS and INP for both devices. "
            f"Is each flat, volatile, or degrading?\n"
            f"2. Detect any sudden jumps (>{jump_percent}% change).\n"
            f"3. Compare the stability of Mobile vs Desktop.\n"
            f"4. Output a brief, data-heavy paragraph focusing ONLY on the timeline."
        )


class ReportPromptBuilder:
    """Builds the synthesizer prompt from the reduced summary and narrator notes."""

    def build_prompt(self, summary: SynthesisSummary, trend_notes: str) -> str:
        mobile_lcp = summary.phone.metrics["lcp"].value
        desktop_lcp = summary.desktop.metrics["lcp"].value
        return (
            f"{_SYNTHESIS_INSTRUCTIONS}\n"
            f"# CONTEXT\n\n"
            f"- Domain: {summary.domain}\n\n"
            f"{_section('Historian Notes', trend_notes)}\n"
            f"{_section('Raw Metrics', summary)}\n"
            f"# TASK\n\n"
            f"1. **Executive Summary:** High-level health check.\n"
            f"2. **Device Gap:** Explain why Mobile LCP ({mobile_lcp:g}ms) differs "
            f"from Desktop LCP ({desktop_lcp:g}ms).\n"
            f"3. **Trend Analysis:** Incorporate the Historian's notes naturally.\n"
            f"4. **Recommendations:** 3 technical fix priorities.\n\n"
            f"Format as clean Markdown."
        )


class ComparisonPromptBuilder:
    """Builds the batch comparison prompt. Every row must reach the scoreboard."""

    def build_prompt(self, rows: List[ScoreboardRow]) -> str:
        return (
            f"{_COMPARISON_INSTRUCTIONS.format(count=len(rows))}\n"
            f"# PROVIDED DATA\n\n"
            f"{_section('Input Data', rows)}\n"
            f"# TASK\n\n"
            f"1. **Master Scoreboard Table (MANDATORY):**\n"
            f"   - Generate a Markdown table immediately at the top.\n"
            f"   - The table MUST have a row for EVERY URL in the input data.\n"
            f"   - Use these exact headers:\n"
            f"     {SCOREBOARD_HEADER}\n"
            f"   - Fill in the values exactly from the input data.\n"
            f"2. **Comparative Analysis:**\n"
            f"   - **Fastest Site:** Which URL has the best Mobile LCP?\n"
            f"   - **Needs Attention:** Which URL has the worst metrics overall?\n"
            f"   - **Pattern Recognition:** Are there shared issues?\n"
            f"   - **Verdict:** Declare a clear performance winner.\n\n"
            f"Do not skip any URLs in the table."
        )
