"""
agent/graph.py

Workflow State Machine for the CrUX audit agent.

One domain cycle is a linear LangGraph workflow (fetch -> narrate ->
synthesize). ``AuditWorkflow.run`` owns the queue and drives one cycle at
a time, in submission order, then runs the batch comparison.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any, Optional

import requests
from langgraph.graph import END, START, StateGraph

from agent.nodes.narrator_node import FAILURE_NOTES, TrendNarrator
from agent.nodes.synthesizer_node import REPORT_FAILURE, ReportSynthesizer
from agent.state import (
    AuditRunResult,
    DomainCycleState,
    DomainReport,
    FailureKind,
    SessionMemory,
    WorkflowState,
)
from crux_audit.config import (
    CrUXSettings,
    LLMSettings,
    WorkflowSettings,
    get_crux_settings,
    get_llm_settings,
    get_workflow_settings,
)
from crux_audit.connectors.crux_connector import CrUXTransport, resolve_transport
from crux_audit.domain.analysis import FormFactor
from crux_audit.errors import AuditConfigurationError
from crux_audit.failure_codes import CRITICAL_FAILURES
from crux_audit.logging_utils import AuditLog, log_event
from crux_audit.services.fetch_aggregator import FetchAggregator
from crux_audit.services.targets import parse_targets
from llm_synthesis.adapter import build_adapter

logger = logging.getLogger(__name__)

TransportFactory = Callable[..., CrUXTransport]

MISSING_CREDENTIAL_MESSAGE = "MISSING CONFIGURATION: Please supply a CrUX API key or proxy URL."
SIMULATION_MODE_MESSAGE = "No narrative model configured. Running in simulation mode."


def build_domain_graph(
    *,
    fetch: Callable[[DomainCycleState], Any],
    narrate: Callable[[DomainCycleState], Any],
    synthesize: Callable[[DomainCycleState], Any],
):
    """
    Build and compile the three-stage workflow for one domain.
    """
    graph = StateGraph(DomainCycleState)

    graph.add_node("fetch", fetch)
    graph.add_node("narrate", narrate)
    graph.add_node("synthesize", synthesize)

    graph.add_edge(START, "fetch")
    graph.add_edge("fetch", "narrate")
    graph.add_edge("narrate", "synthesize")
    graph.add_edge("synthesize", END)

    return graph.compile()


class AuditWorkflow:
    """
    Orchestrates an audit run. Only this class writes session memory, the
    accumulated reports and the audit log.
    """

    def __init__(
        self,
        *,
        credential: Optional[str] = None,
        crux_settings: Optional[CrUXSettings] = None,
        workflow_settings: Optional[WorkflowSettings] = None,
        llm_settings: Optional[LLMSettings] = None,
        narrator: Optional[TrendNarrator] = None,
        synthesizer: Optional[ReportSynthesizer] = None,
        transport_factory: TransportFactory = resolve_transport,
        session: Optional[requests.Session] = None,
        audit_log: Optional[AuditLog] = None,
    ) -> None:
        self._crux_settings = crux_settings or get_crux_settings()
        self._workflow_settings = workflow_settings or get_workflow_settings()
        self._default_credential = credential if credential is not None else self._crux_settings.api_key

        if narrator is None or synthesizer is None:
            resolved_llm = llm_settings or get_llm_settings()
            adapter = build_adapter(resolved_llm)
            narrator = narrator or TrendNarrator(
                adapter,
                temperature=resolved_llm.narrator_temperature,
                max_retries=resolved_llm.max_retries,
            )
            synthesizer = synthesizer or ReportSynthesizer(
                adapter,
                temperature=resolved_llm.synthesis_temperature,
                max_retries=resolved_llm.max_retries,
            )
        self._narrator = narrator
        self._synthesizer = synthesizer
        self._transport_factory = transport_factory
        self._session = session

        self._log = audit_log or AuditLog()
        self._state = WorkflowState.IDLE
        self._memory = SessionMemory()
        self._queue: deque[str] = deque()
        self._reports: list[DomainReport] = []
        self._aggregator: Optional[FetchAggregator] = None
        self._graph = build_domain_graph(
            fetch=self._fetch_stage,
            narrate=self._narrate_stage,
            synthesize=self._synthesize_stage,
        )

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def memory(self) -> SessionMemory:
        return self._memory

    @property
    def audit_log(self) -> AuditLog:
        return self._log

    @property
    def queue(self) -> list[str]:
        return list(self._queue)

    async def run(
        self,
        targets: str | Iterable[str],
        credential: Optional[str] = None,
    ) -> AuditRunResult:
        """
        Audit every target in order. Returns a result in Complete or Failed.
        """
        self._reset()

        resolved_credential = (credential if credential is not None else self._default_credential) or ""
        if not resolved_credential.strip():
            self._log.add("Assistant", MISSING_CREDENTIAL_MESSAGE, "error")
            return self._fail(
                FailureKind.CONFIGURATION,
                AuditConfigurationError("A CrUX API key or proxy URL is required."),
            )

        target_list = parse_targets(targets, max_batch_size=self._workflow_settings.max_batch_size)
        if target_list.truncated:
            self._log.add(
                "Assistant",
                f"Batch size limited to {self._workflow_settings.max_batch_size}. "
                f"Processing the first {len(target_list.targets)} URLs.",
                "warning",
            )
        if not target_list.targets:
            self._log.add("Assistant", "MISSING CONFIGURATION: No target domains supplied.", "error")
            return self._fail(
                FailureKind.CONFIGURATION,
                AuditConfigurationError("At least one target domain is required."),
            )

        transport = self._transport_factory(
            resolved_credential,
            settings=self._crux_settings,
            session=self._session,
        )
        self._aggregator = FetchAggregator(transport)
        self._queue = deque(target_list.targets)
        total = len(self._queue)
        self._log.add("Assistant", f"Initializing Intelligence System. Queue: {total}")
        if not (self._narrator.available and self._synthesizer.available):
            self._log.add("Assistant", SIMULATION_MODE_MESSAGE, "warning")

        try:
            while self._queue:
                domain = self._queue[0]
                task_number = total - len(self._queue) + 1
                self._log.add("Assistant", f"[{task_number}/{total}] Processing {domain}")

                cycle = await self._graph.ainvoke({"domain": domain})
                self._complete_cycle(cycle)

                if self._queue:
                    await asyncio.sleep(self._workflow_settings.inter_cycle_pause_seconds)

            comparison: Optional[str] = None
            if total > 1:
                self._log.add("Interpreter", "Finalizing batch comparison...")
                comparison = await self._synthesizer.compare([report.analysis for report in self._reports])
            return self._finish(comparison)
        except Exception as exc:  # noqa: BLE001
            self._log.add("Assistant", f"System Failure: {exc}", "error")
            return self._fail(FailureKind.PROCESSING, exc)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _fetch_stage(self, state: DomainCycleState) -> dict[str, Any]:
        self._transition(WorkflowState.FETCHING)
        domain = state["domain"]
        if self._aggregator is None:
            raise RuntimeError("Fetch stage entered before a transport was resolved.")

        self._log.add("Assistant", "Dispatching: Query Agent")
        analysis = await self._aggregator.fetch_analysis(domain)

        self._memory.last_domain = domain
        self._memory.last_analysis = analysis
        for form_factor in (FormFactor.PHONE, FormFactor.DESKTOP):
            if not analysis.for_form_factor(form_factor).has_history:
                self._log.add(
                    "Query Agent",
                    f"History unavailable for {domain} ({form_factor.value}); "
                    "trends use current values only.",
                    "warning",
                )
        self._log.add("Query Agent", "Committed raw results to Session Memory.", "success")
        return {"analysis": analysis}

    async def _narrate_stage(self, state: DomainCycleState) -> dict[str, Any]:
        self._transition(WorkflowState.NARRATING)
        domain = state["domain"]
        analysis = self._memory.last_analysis
        if analysis is None:
            raise RuntimeError("Memory inconsistency: Query data not found for Historian.")

        self._log.add("Assistant", "Dispatching: Historian Agent")
        notes = await self._narrator.narrate(domain, analysis)
        if notes == FAILURE_NOTES:
            self._log.add("Historian", "Trend narration failed; continuing with placeholder.", "warning")

        self._memory.last_trend_notes = notes
        self._log.add("Historian", "Committed trend analysis to Session Memory.", "success")
        return {"trend_notes": notes}

    async def _synthesize_stage(self, state: DomainCycleState) -> dict[str, Any]:
        self._transition(WorkflowState.SYNTHESIZING)
        domain = state["domain"]
        analysis = self._memory.last_analysis
        notes = self._memory.last_trend_notes
        if analysis is None or notes is None:
            raise RuntimeError("Memory inconsistency: Data not found for Interpreter.")

        self._log.add("Assistant", "Dispatching: Interpreter Agent")
        report = await self._synthesizer.synthesize(domain, analysis, notes)
        if report == REPORT_FAILURE:
            self._log.add("Interpreter", "Report synthesis failed; continuing with placeholder.", "warning")

        self._memory.last_report = report
        return {"report": report}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _complete_cycle(self, cycle: dict[str, Any]) -> None:
        domain = self._queue.popleft()
        self._reports.append(
            DomainReport(
                domain=domain,
                analysis=cycle["analysis"],
                trend_notes=cycle["trend_notes"],
                report=cycle["report"],
            )
        )
        self._log.add("Assistant", f"Cycle complete for {domain}.", "success")

    def _transition(self, new_state: WorkflowState) -> None:
        log_event(
            logger,
            logging.INFO,
            "workflow_transition",
            from_state=self._state.value,
            to_state=new_state.value,
            domain=self._queue[0] if self._queue else None,
        )
        self._state = new_state

    def _reset(self) -> None:
        self._log.reset()
        self._state = WorkflowState.IDLE
        self._memory = SessionMemory()
        self._queue = deque()
        self._reports = []
        self._aggregator = None

    def _finish(self, comparison: Optional[str]) -> AuditRunResult:
        if comparison is not None:
            sections = [f"# Report: {report.domain}\n\n{report.report}" for report in self._reports]
            sections.append(f"# Comparative Conclusion\n\n{comparison}")
            final_report = "\n\n---\n\n".join(sections)
        else:
            final_report = self._reports[-1].report if self._reports else ""

        self._memory.last_report = final_report
        self._log.add("Assistant", "Intelligence cycle complete.", "success")
        self._transition(WorkflowState.COMPLETE)
        return AuditRunResult(
            state=self._state,
            reports=list(self._reports),
            comparison=comparison,
            final_report=final_report,
            logs=self._log.entries,
        )

    def _fail(self, kind: FailureKind, error: Exception) -> AuditRunResult:
        failure_code = getattr(error, "failure_code", "unexpected_error")
        log_event(
            logger,
            logging.ERROR,
            "audit_failed",
            failure_kind=kind.value,
            failure_code=failure_code,
            critical=failure_code in CRITICAL_FAILURES,
            error=str(error),
            pending=list(self._queue),
        )
        self._transition(WorkflowState.FAILED)
        return AuditRunResult(
            state=self._state,
            failure_kind=kind,
            error=str(error),
            logs=self._log.entries,
        )
