"""Validation layer for raw LLM narrative output.

Checks Markdown narratives for emptiness and, for the batch comparison,
that every audited domain reached the scoreboard.
"""

import re
from typing import List, Sequence
from urllib.parse import urlparse


class LLMOutputValidationError(Exception):
    """Raised when LLM output fails validation.

    Attributes:
        stage: Which validation step failed ("empty" or "scoreboard").
        errors: List of human-readable error descriptions.
        raw_response: The original string that failed validation.
    """

    def __init__(
        self,
        stage: str,
        errors: List[str],
        raw_response: str,
    ) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        message = (
            f"LLM output validation failed at stage '{stage}': "
            + "; ".join(errors)
        )
        super().__init__(message)


def _strip_markdown_fences(text: str) -> str:
    """Remove an optional code fence wrapping the whole response.

    Models sometimes wrap Markdown output in ```markdown ... ``` despite
    instructions.

    Args:
        text: Raw LLM response string.

    Returns:
        The text with leading/trailing code fences removed, if present.
    """
    stripped = text.strip()
    match = re.match(
        r"^```(?:markdown|md)?\s*\n?(.*?)\n?\s*```$",
        stripped,
        re.DOTALL,
    )
    if match:
        return match.group(1).strip()
    return stripped


def _domain_aliases(domain: str) -> List[str]:
    host = urlparse(domain).netloc
    aliases = [domain, domain.rstrip("/")]
    if host:
        aliases.append(host)
        if host.startswith("www."):
            aliases.append(host[len("www."):])
    return aliases


def _mentions(text: str, alias: str) -> bool:
    """True when ``alias`` appears as a whole host or URL, not inside a longer one."""
    pattern = rf"(?<![\w.-]){re.escape(alias.lower())}(?![\w-]|\.\w)"
    return re.search(pattern, text) is not None


def validate_narrative(raw_response: str) -> str:
    """Return the cleaned narrative text.

    Raises:
        LLMOutputValidationError: If nothing is left after cleanup.
    """
    cleaned = _strip_markdown_fences(raw_response or "")
    if not cleaned:
        raise LLMOutputValidationError(
            stage="empty",
            errors=["response was empty"],
            raw_response=raw_response or "",
        )
    return cleaned


def validate_comparison_report(raw_response: str, domains: Sequence[str]) -> str:
    """Return the cleaned comparison text once every domain is present.

    A domain counts as present if its URL or bare host appears as a whole
    token; ``x.com`` inside ``box.com`` or ``google.com.au`` does not count.

    Raises:
        LLMOutputValidationError: If the response is empty or omits a domain.
    """
    cleaned = validate_narrative(raw_response)
    lowered = cleaned.lower()
    missing = [
        domain
        for domain in domains
        if not any(_mentions(lowered, alias) for alias in _domain_aliases(domain))
    ]
    if missing:
        raise LLMOutputValidationError(
            stage="scoreboard",
            errors=[f"scoreboard is missing {domain}" for domain in missing],
            raw_response=raw_response,
        )
    return cleaned
