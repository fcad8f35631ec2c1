"""
tests/test_crux_connector.py

Transport selection, request shape and retry policy for the metrics source.
"""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from crux_audit.config import CrUXSettings
from crux_audit.connectors import base as connector_base
from crux_audit.connectors.base import ConnectorRequestError
from crux_audit.connectors.crux_connector import (
    DirectAPITransport,
    ProxyTransport,
    is_proxy_credential,
    resolve_transport,
)
from crux_audit.domain.analysis import FormFactor
from crux_payloads import FakeResponse, FakeSession, history_payload, snapshot_payload

ORIGIN = "https://example.com"


@pytest.fixture()
def settings() -> CrUXSettings:
    return CrUXSettings(retry_backoff_seconds=0.0, history_windows=25)


@pytest.fixture()
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def _recording_sleep(delay: float) -> None:
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(connector_base.asyncio, "sleep", _recording_sleep)
    return delays


# ---------------------------------------------------------------------------
# Transport selection
# ---------------------------------------------------------------------------


class TestResolveTransport:
    @pytest.mark.parametrize(
        "credential, expected",
        [
            ("https://script.google.com/macros/s/abc/exec", True),
            ("HTTP://proxy.local/crux", True),
            ("  https://proxy.local  ", True),
            ("AIzaSyExampleKey", False),
            ("httpkey-without-scheme", False),
        ],
    )
    def test_is_proxy_credential(self, credential: str, expected: bool) -> None:
        assert is_proxy_credential(credential) is expected

    def test_url_resolves_to_proxy(self, settings: CrUXSettings) -> None:
        transport = resolve_transport(" https://proxy.local/exec ", settings=settings)
        assert isinstance(transport, ProxyTransport)
        assert transport.mode == "proxy"

    def test_key_resolves_to_direct(self, settings: CrUXSettings) -> None:
        transport = resolve_transport("AIzaSyExampleKey", settings=settings)
        assert isinstance(transport, DirectAPITransport)
        assert transport.mode == "direct"

    def test_empty_credential_is_rejected(self, settings: CrUXSettings) -> None:
        with pytest.raises(ValueError):
            resolve_transport("   ", settings=settings)


# ---------------------------------------------------------------------------
# Direct API
# ---------------------------------------------------------------------------


class TestDirectAPITransport:
    def test_snapshot_request_shape(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(200, snapshot_payload())])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        result = asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))

        assert result.record.metrics.has_tracked_metric()
        sent = session.requests[0]
        assert sent["method"] == "POST"
        assert sent["url"] == settings.record_url
        assert sent["params"] == {"key": "KEY"}
        assert sent["json"] == {"origin": ORIGIN, "formFactor": "PHONE"}

    def test_history_request_carries_window_count(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(200, history_payload())])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        asyncio.run(transport.get_history(ORIGIN, FormFactor.DESKTOP))

        sent = session.requests[0]
        assert sent["url"] == settings.history_url
        assert sent["json"] == {
            "origin": ORIGIN,
            "formFactor": "DESKTOP",
            "collectionPeriodCount": 25,
        }

    def test_non_success_status_raises(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(404, {"error": {"code": 404}})])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError, match="HTTP 404"):
            asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))
        assert len(session.requests) == 1

    def test_error_field_raises(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(200, {"error": "quota exceeded"})])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError, match="quota exceeded"):
            asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))

    def test_invalid_json_raises(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(200, invalid_json=True)])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError, match="not valid JSON"):
            asyncio.run(transport.get_history(ORIGIN, FormFactor.PHONE))

    def test_history_without_record_raises(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(200, {"something": "else"})])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError, match="history record shape"):
            asyncio.run(transport.get_history(ORIGIN, FormFactor.PHONE))


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


class TestRetryPolicy:
    def test_network_failure_is_retried_once(self, settings: CrUXSettings) -> None:
        session = FakeSession(
            [requests.ConnectionError("reset"), FakeResponse(200, snapshot_payload())]
        )
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        result = asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))

        assert result.record.metrics.largest_contentful_paint is not None
        assert len(session.requests) == 2

    def test_retry_waits_for_backoff(self, recorded_sleeps: list[float]) -> None:
        session = FakeSession(
            [requests.Timeout("slow"), FakeResponse(200, snapshot_payload())]
        )
        transport = DirectAPITransport(
            api_key="KEY",
            settings=CrUXSettings(retry_backoff_seconds=1.0),
            session=session,
        )

        asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))

        assert recorded_sleeps == [1.0]
        assert len(session.requests) == 2

    def test_no_wait_without_failure(self, recorded_sleeps: list[float]) -> None:
        session = FakeSession([FakeResponse(200, snapshot_payload())])
        transport = DirectAPITransport(api_key="KEY", settings=CrUXSettings(), session=session)

        asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))

        assert recorded_sleeps == []

    def test_second_network_failure_is_terminal(self, settings: CrUXSettings) -> None:
        session = FakeSession([requests.Timeout("slow"), requests.Timeout("slow")])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError, match="failed after retries"):
            asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))
        assert len(session.requests) == 2

    def test_http_errors_are_not_retried(self, settings: CrUXSettings) -> None:
        session = FakeSession([FakeResponse(503, None)])
        transport = DirectAPITransport(api_key="KEY", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError):
            asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))
        assert len(session.requests) == 1


# ---------------------------------------------------------------------------
# Proxy
# ---------------------------------------------------------------------------


class TestProxyTransport:
    def test_query_parameters(self, settings: CrUXSettings) -> None:
        session = FakeSession(
            [FakeResponse(200, snapshot_payload()), FakeResponse(200, history_payload())]
        )
        transport = ProxyTransport(
            base_url="https://proxy.local/exec", settings=settings, session=session
        )

        asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))
        asyncio.run(transport.get_history(ORIGIN, FormFactor.PHONE))

        fetch_url, history_url = (sent["url"] for sent in session.requests)
        assert session.requests[0]["method"] == "GET"
        assert parse_qs(urlparse(fetch_url).query) == {
            "origin": [ORIGIN],
            "formFactor": ["PHONE"],
            "endpoint": ["fetch"],
        }
        assert parse_qs(urlparse(history_url).query)["endpoint"] == ["history"]

    def test_existing_query_string_is_extended(self, settings: CrUXSettings) -> None:
        transport = ProxyTransport(base_url="https://proxy.local/exec?token=abc", settings=settings)

        url = transport.build_url(ORIGIN, FormFactor.DESKTOP, "fetch")

        assert url.startswith("https://proxy.local/exec?token=abc&")
        assert parse_qs(urlparse(url).query)["token"] == ["abc"]

    def test_connection_failure_message(self, settings: CrUXSettings) -> None:
        session = FakeSession(
            [requests.ConnectionError("refused"), requests.ConnectionError("refused")]
        )
        transport = ProxyTransport(base_url="https://proxy.local/exec", settings=settings, session=session)

        with pytest.raises(ConnectorRequestError, match="Check proxy URL and permissions"):
            asyncio.run(transport.get_snapshot(ORIGIN, FormFactor.PHONE))
