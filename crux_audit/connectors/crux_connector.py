"""
crux_audit/connectors/crux_connector.py

Metrics source transports. A credential string is resolved once per run
into either a direct API transport (opaque key) or a proxy transport
(HTTP(S) base URL).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from crux_audit.config import CrUXSettings
from crux_audit.connectors.base import AsyncHTTPConnector, ConnectorRequestError
from crux_audit.domain.analysis import FormFactor
from crux_audit.domain.crux import RawDeviceHistory, RawDeviceSnapshot

logger = logging.getLogger(__name__)

PROXY_SCHEMES = ("http://", "https://")


def is_proxy_credential(credential: str) -> bool:
    return credential.strip().lower().startswith(PROXY_SCHEMES)


class CrUXTransport(AsyncHTTPConnector, ABC):
    """
    Metrics source boundary: one snapshot call and one history call per
    (origin, form factor) pair.
    """

    mode: str

    async def get_snapshot(self, origin: str, form_factor: FormFactor) -> RawDeviceSnapshot:
        payload = await self._fetch_snapshot_payload(origin, form_factor)
        try:
            return RawDeviceSnapshot.model_validate(payload)
        except ValidationError as exc:
            raise ConnectorRequestError(
                f"{self.source}: snapshot response for {origin} ({form_factor.value}) "
                "did not match the record shape."
            ) from exc

    async def get_history(self, origin: str, form_factor: FormFactor) -> RawDeviceHistory:
        payload = await self._fetch_history_payload(origin, form_factor)
        try:
            return RawDeviceHistory.model_validate(payload)
        except ValidationError as exc:
            raise ConnectorRequestError(
                f"{self.source}: history response for {origin} ({form_factor.value}) "
                "did not match the history record shape."
            ) from exc

    @abstractmethod
    async def _fetch_snapshot_payload(self, origin: str, form_factor: FormFactor) -> Any:
        """Return the decoded current-snapshot JSON."""

    @abstractmethod
    async def _fetch_history_payload(self, origin: str, form_factor: FormFactor) -> Any:
        """Return the decoded history JSON."""


class DirectAPITransport(CrUXTransport):
    """
    Calls the percentile-report API directly with an API key.
    """

    mode = "direct"

    def __init__(
        self,
        *,
        api_key: str,
        settings: CrUXSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="crux_api", settings=settings, session=session)
        self._api_key = api_key
        self._record_url = settings.record_url
        self._history_url = settings.history_url
        self._history_windows = settings.history_windows

    async def _fetch_snapshot_payload(self, origin: str, form_factor: FormFactor) -> Any:
        return await self._request_json(
            method="POST",
            url=self._record_url,
            params={"key": self._api_key},
            json_body={"origin": origin, "formFactor": form_factor.value},
        )

    async def _fetch_history_payload(self, origin: str, form_factor: FormFactor) -> Any:
        return await self._request_json(
            method="POST",
            url=self._history_url,
            params={"key": self._api_key},
            json_body={
                "origin": origin,
                "formFactor": form_factor.value,
                "collectionPeriodCount": self._history_windows,
            },
        )


class ProxyTransport(CrUXTransport):
    """
    Routes both calls through an intermediary endpoint reached by GET with
    ``origin``, ``formFactor`` and ``endpoint`` query parameters.
    """

    mode = "proxy"

    def __init__(
        self,
        *,
        base_url: str,
        settings: CrUXSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="crux_proxy", settings=settings, session=session)
        self._base_url = base_url

    def build_url(self, origin: str, form_factor: FormFactor, endpoint: str) -> str:
        separator = "&" if "?" in self._base_url else "?"
        query = urlencode(
            {"origin": origin, "formFactor": form_factor.value, "endpoint": endpoint}
        )
        return f"{self._base_url}{separator}{query}"

    async def _fetch_snapshot_payload(self, origin: str, form_factor: FormFactor) -> Any:
        return await self._request_json(
            method="GET",
            url=self.build_url(origin, form_factor, "fetch"),
        )

    async def _fetch_history_payload(self, origin: str, form_factor: FormFactor) -> Any:
        return await self._request_json(
            method="GET",
            url=self.build_url(origin, form_factor, "history"),
        )

    def _exhausted_error(self, last_error: Exception | None) -> ConnectorRequestError:
        if isinstance(last_error, requests.ConnectionError):
            return ConnectorRequestError("Connection failed. Check proxy URL and permissions.")
        return super()._exhausted_error(last_error)


def resolve_transport(
    credential: str,
    *,
    settings: CrUXSettings,
    session: requests.Session | None = None,
) -> CrUXTransport:
    """
    Pick the transport for a credential string. Raises ValueError when empty.
    """

    cleaned = credential.strip()
    if not cleaned:
        raise ValueError("A CrUX API key or proxy URL is required.")
    if is_proxy_credential(cleaned):
        logger.info("Using proxy transport for metrics source.")
        return ProxyTransport(base_url=cleaned, settings=settings, session=session)
    logger.info("Using direct API transport for metrics source.")
    return DirectAPITransport(api_key=cleaned, settings=settings, session=session)
