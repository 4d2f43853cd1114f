"""
Connectors that talk to external providers.

A provider row names its connector through ``connector_key``; the registry
below maps those keys to connector classes.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type


logger = logging.getLogger(__name__)


def _has_value(config: Dict[str, Any], *keys: str) -> bool:
    for key in keys:
        value = config.get(key)
        if isinstance(value, str) and value.strip():
            return True
    return False


class BaseConnector:
    key = ""

    def test_connection(self, config: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class MockAccountingConnector(BaseConnector):
    key = "mock"

    def test_connection(self, config):
        if _has_value(config or {}, "api_key", "apiKey"):
            return {"success": True, "message": "Connection successful."}
        return {"success": False, "message": "An API key is required."}


class MockBankConnector(BaseConnector):
    """PSD2-style sandbox bank: needs a client id and secret."""

    key = "mock_bank"

    def test_connection(self, config):
        config = config or {}
        missing = [
            name
            for name, aliases in (("client_id", ("client_id", "clientId")), ("client_secret", ("client_secret", "clientSecret")))
            if not _has_value(config, *aliases)
        ]
        if missing:
            return {"success": False, "message": f"Missing credentials: {', '.join(missing)}."}
        return {"success": True, "message": "Connection successful."}


CONNECTORS: Dict[str, Type[BaseConnector]] = {
    MockAccountingConnector.key: MockAccountingConnector,
    MockBankConnector.key: MockBankConnector,
}


def get_connector(connector_key: str) -> Optional[BaseConnector]:
    connector_class = CONNECTORS.get(connector_key)
    if connector_class is None:
        logger.warning("No connector registered for key %r", connector_key)
        return None
    return connector_class()
