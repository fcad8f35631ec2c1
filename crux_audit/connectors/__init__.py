"""
crux_audit/connectors package marker.
"""

from crux_audit.connectors.base import AsyncHTTPConnector, ConnectorRequestError
from crux_audit.connectors.crux_connector import (
    CrUXTransport,
    DirectAPITransport,
    ProxyTransport,
    is_proxy_credential,
    resolve_transport,
)

__all__ = [
    "AsyncHTTPConnector",
    "ConnectorRequestError",
    "CrUXTransport",
    "DirectAPITransport",
    "ProxyTransport",
    "is_proxy_credential",
    "resolve_transport",
]
