"""
tests/test_config.py

Environment-driven settings.
"""

from __future__ import annotations

import os

import pytest

from crux_audit import config


def _unset(monkeypatch: pytest.MonkeyPatch, *names: str) -> None:
    # setenv first so monkeypatch restores the variable to absent afterwards.
    for name in names:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    config.get_crux_settings.cache_clear()
    config.get_llm_settings.cache_clear()
    config.get_workflow_settings.cache_clear()
    yield
    config.get_crux_settings.cache_clear()
    config.get_llm_settings.cache_clear()
    config.get_workflow_settings.cache_clear()


class TestSettings:
    def test_crux_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRUX_API_KEY", "  key-123  ")
        monkeypatch.setenv("CRUX_HTTP_MAX_RETRIES", "3")
        monkeypatch.setenv("CRUX_HISTORY_WINDOWS", "not-a-number")

        settings = config.get_crux_settings()

        assert settings.api_key == "key-123"
        assert settings.max_retries == 3
        assert settings.history_windows == config.HISTORY_WINDOWS

    def test_llm_key_fallback_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        monkeypatch.setenv("OPENAI_API_KEY", "openai-key")

        assert config.get_llm_settings().api_key == "gemini-key"

    def test_batch_size_is_fixed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDIT_INTER_CYCLE_PAUSE_SECONDS", "-2")

        settings = config.get_workflow_settings()

        assert settings.max_batch_size == 10
        assert settings.inter_cycle_pause_seconds == 0.0

    def test_default_temperatures(self) -> None:
        settings = config.LLMSettings()
        assert settings.narrator_temperature == 0.3
        assert settings.synthesis_temperature == 0.5


class TestEnvFiles:
    def test_env_file_values_are_loaded(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        _unset(monkeypatch, "CRUX_TEST_PLAIN", "CRUX_TEST_EXPORTED", "CRUX_TEST_QUOTED", "CRUX_TEST_COMMENTED")
        (tmp_path / ".env").write_text(
            "# metrics source\n"
            "CRUX_TEST_PLAIN=plain\n"
            "export CRUX_TEST_EXPORTED=exported\n"
            "CRUX_TEST_QUOTED=\"has # hash\"\n"
            "CRUX_TEST_COMMENTED=value # trailing note\n"
            "not a setting\n",
            encoding="utf-8",
        )

        config.load_env_files(tmp_path)

        assert os.environ["CRUX_TEST_PLAIN"] == "plain"
        assert os.environ["CRUX_TEST_EXPORTED"] == "exported"
        assert os.environ["CRUX_TEST_QUOTED"] == "has # hash"
        assert os.environ["CRUX_TEST_COMMENTED"] == "value"

    def test_process_environment_wins(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRUX_TEST_PRESET", "from-process")
        _unset(monkeypatch, "CRUX_TEST_LOCAL")
        (tmp_path / ".env").write_text("CRUX_TEST_PRESET=from-file\nCRUX_TEST_LOCAL=base\n", encoding="utf-8")
        (tmp_path / ".env.local").write_text("CRUX_TEST_LOCAL=local\n", encoding="utf-8")

        config.load_env_files(tmp_path)

        assert os.environ["CRUX_TEST_PRESET"] == "from-process"
        assert os.environ["CRUX_TEST_LOCAL"] == "base"

    def test_blank_value_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_MODEL", "   ")
        assert config.get_llm_settings().model == "gemini-2.5-flash"
