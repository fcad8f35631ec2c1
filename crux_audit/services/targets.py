"""
crux_audit/services/targets.py

Target list parsing: comma-separated input becomes an ordered list of
absolute origins, capped at the batch size.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from crux_audit.config import MAX_BATCH_SIZE

_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class TargetList:
    targets: list[str]
    submitted: int

    @property
    def truncated(self) -> bool:
        return self.submitted > len(self.targets)


def normalize_domain(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned and not _SCHEME_PATTERN.match(cleaned):
        cleaned = f"https://{cleaned}"
    return cleaned


def parse_targets(raw: str | Iterable[str], *, max_batch_size: int = MAX_BATCH_SIZE) -> TargetList:
    """
    Split, normalize and cap the submitted targets. Order is preserved and
    entries past ``max_batch_size`` are dropped.
    """

    chunks = [raw] if isinstance(raw, str) else list(raw)
    targets: list[str] = []
    for chunk in chunks:
        for part in chunk.split(","):
            normalized = normalize_domain(part)
            if normalized:
                targets.append(normalized)
    return TargetList(targets=targets[:max_batch_size], submitted=len(targets))
