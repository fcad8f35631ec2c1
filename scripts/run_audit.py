"""
Run a CrUX performance audit from CLI.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Sequence

from agent.graph import AuditWorkflow
from agent.state import FailureKind, WorkflowState

EXIT_OK = 0
EXIT_PROCESSING_FAILURE = 1
EXIT_CONFIGURATION_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Audit Core Web Vitals for one or more origins.")
    parser.add_argument(
        "domains",
        help="Origin or comma-separated list of origins (max 10).",
    )
    parser.add_argument(
        "--credential",
        dest="credential",
        default=None,
        help="CrUX API key or proxy URL. Defaults to CRUX_API_KEY.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def exit_code_for(state: WorkflowState, failure_kind: FailureKind | None) -> int:
    if state is WorkflowState.COMPLETE:
        return EXIT_OK
    if failure_kind is FailureKind.CONFIGURATION:
        return EXIT_CONFIGURATION_FAILURE
    return EXIT_PROCESSING_FAILURE


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    workflow = AuditWorkflow()
    result = asyncio.run(workflow.run(args.domains, credential=args.credential))

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return exit_code_for(result.state, result.failure_kind)


if __name__ == "__main__":
    raise SystemExit(main())
