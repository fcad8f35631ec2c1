"""
crux_audit/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, TypeVar

# Fixed analysis constants. Changing them changes what counts as a regression.
REGRESSION_THRESHOLD = 0.15
REGRESSION_MIN_POINTS = 4
NARRATOR_JUMP_THRESHOLD = 0.10
HISTORY_WINDOWS = 25
MAX_BATCH_SIZE = 10

DEFAULT_CRUX_RECORD_URL = "https://chromeuxreport.googleapis.com/v1/records:queryRecord"
DEFAULT_CRUX_HISTORY_URL = "https://chromeuxreport.googleapis.com/v1/records:queryHistoryRecord"
DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

_Number = TypeVar("_Number", int, float)


PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILENAMES = (".env", ".env.local")


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, value = line.split("=", 1)
    key = key.strip()
    value = value.strip()
    if value[:1] in {'"', "'"} and value.endswith(value[0]) and len(value) > 1:
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return (key, value) if key else None


def load_env_files(root: Path | None = None) -> None:
    """
    Load KEY=VALUE pairs from `.env` then `.env.local` under ``root``.

    Accepts an optional `export ` prefix, quoted values and trailing
    ` # comments` on unquoted values. Variables already present in the
    process environment always win.
    """

    base = root or PROJECT_ROOT
    for filename in ENV_FILENAMES:
        env_path = base / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _read_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def _get_number_env(name: str, default: _Number, parse: Callable[[str], _Number]) -> _Number:
    raw_value = _read_env(name)
    if raw_value is None:
        return default
    try:
        return parse(raw_value)
    except ValueError:
        return default


def _get_int_env(name: str, default: int) -> int:
    return _get_number_env(name, default, int)


def _get_float_env(name: str, default: float) -> float:
    return _get_number_env(name, default, float)


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string setting; blank values fall back to ``default``.
    """

    return _read_env(name) or default


def _get_optional_str_env(*names: str) -> str | None:
    """
    Return the first non-blank value among the given environment variables.
    """

    for name in names:
        value = _read_env(name)
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class CrUXSettings:
    """
    Metrics source settings shared by both transports.
    """

    api_key: str | None = None
    record_url: str = DEFAULT_CRUX_RECORD_URL
    history_url: str = DEFAULT_CRUX_HISTORY_URL
    timeout_seconds: float = 15.0
    max_retries: int = 1
    retry_backoff_seconds: float = 1.0
    history_windows: int = HISTORY_WINDOWS


@dataclass(frozen=True)
class WorkflowSettings:
    """
    Runtime settings for the audit workflow loop.
    """

    max_batch_size: int = MAX_BATCH_SIZE
    inter_cycle_pause_seconds: float = 0.8


@dataclass(frozen=True)
class LLMSettings:
    """
    Narrative-generation adapter settings.
    """

    adapter: str = "openai"
    model: str = "gemini-2.5-flash"
    api_key: str | None = None
    base_url: str | None = DEFAULT_LLM_BASE_URL
    max_tokens: int = 2048
    narrator_temperature: float = 0.3
    synthesis_temperature: float = 0.5
    max_retries: int = 1


@lru_cache(maxsize=1)
def get_crux_settings() -> CrUXSettings:
    """
    Return cached metrics source settings from environment variables.
    """

    return CrUXSettings(
        api_key=_get_optional_str_env("CRUX_API_KEY"),
        record_url=_get_str_env("CRUX_API_BASE", DEFAULT_CRUX_RECORD_URL),
        history_url=_get_str_env("CRUX_HISTORY_API_BASE", DEFAULT_CRUX_HISTORY_URL),
        timeout_seconds=max(1.0, _get_float_env("CRUX_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("CRUX_HTTP_MAX_RETRIES", 1)),
        retry_backoff_seconds=max(0.0, _get_float_env("CRUX_HTTP_RETRY_BACKOFF_SECONDS", 1.0)),
        history_windows=max(1, _get_int_env("CRUX_HISTORY_WINDOWS", HISTORY_WINDOWS)),
    )


@lru_cache(maxsize=1)
def get_workflow_settings() -> WorkflowSettings:
    """
    Return cached workflow settings.
    """

    return WorkflowSettings(
        max_batch_size=MAX_BATCH_SIZE,
        inter_cycle_pause_seconds=max(0.0, _get_float_env("AUDIT_INTER_CYCLE_PAUSE_SECONDS", 0.8)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached narrative-generation settings from environment variables.
    """

    return LLMSettings(
        adapter=_get_str_env("LLM_ADAPTER", "openai").lower(),
        model=_get_str_env("LLM_MODEL", "gemini-2.5-flash"),
        api_key=_get_optional_str_env("LLM_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY"),
        base_url=_get_str_env("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
        max_tokens=max(1, _get_int_env("LLM_MAX_TOKENS", 2048)),
        narrator_temperature=_get_float_env("LLM_NARRATOR_TEMPERATURE", 0.3),
        synthesis_temperature=_get_float_env("LLM_SYNTHESIS_TEMPERATURE", 0.5),
        max_retries=max(0, _get_int_env("LLM_MAX_RETRIES", 1)),
    )
