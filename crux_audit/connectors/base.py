"""
crux_audit/connectors/base.py

Shared async HTTP mechanics for metrics source connectors.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import requests

from crux_audit.config import CrUXSettings

logger = logging.getLogger(__name__)


class ConnectorRequestError(RuntimeError):
    """
    Raised when a connector request fails or returns an unusable payload.
    """


class AsyncHTTPConnector:
    """
    Runs blocking ``requests`` calls off the event loop so several can be
    in flight at once. Network-level failures are retried after a fixed backoff.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        settings: CrUXSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._timeout_seconds = settings.timeout_seconds
        self._max_retries = settings.max_retries
        self._retry_backoff_seconds = settings.retry_backoff_seconds

    async def _request_json(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Execute an HTTP request and return the decoded JSON body.

        Non-success status codes, undecodable bodies and payloads carrying an
        ``error`` field all raise ConnectorRequestError.
        """

        response = await self._request(method=method, url=url, params=params, json_body=json_body)
        if not response.ok:
            raise ConnectorRequestError(f"{self.source}: HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ConnectorRequestError(f"{self.source}: response was not valid JSON.") from exc

        if isinstance(payload, dict) and payload.get("error"):
            raise ConnectorRequestError(
                f"{self.source}: {json.dumps(payload['error'], default=str)}"
            )
        return payload

    async def _request(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                return await asyncio.to_thread(
                    self._session.request,
                    method=method,
                    url=url,
                    params=params,
                    json=json_body,
                    timeout=self._timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            logger.warning(
                "Connector request retry source=%s attempt=%s/%s wait_seconds=%.2f",
                self.source,
                attempt + 1,
                self._max_retries,
                self._retry_backoff_seconds,
            )
            await asyncio.sleep(self._retry_backoff_seconds)

        logger.error(
            "Connector request exhausted retries source=%s error=%s",
            self.source,
            last_error,
        )
        raise self._exhausted_error(last_error) from last_error

    def _exhausted_error(self, last_error: Exception | None) -> ConnectorRequestError:
        return ConnectorRequestError(f"{self.source}: request failed after retries.")
