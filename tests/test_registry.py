"""
Tests for connector discovery and the not-configured dependency.
"""

import pytest
from fastapi import HTTPException

from connectors import routes
from connectors.google_drive import GoogleDriveConnector
from connectors.registry import ConnectorRegistry


class _Unconfigured(GoogleDriveConnector):
    def is_configured(self):
        return False


class _Configured(GoogleDriveConnector):
    def is_configured(self):
        return True


@pytest.fixture(autouse=True)
def fresh_registry():
    ConnectorRegistry.reset()
    yield
    ConnectorRegistry.reset()


class TestConnectorRegistry:
    def test_configured_connector_is_registered(self):
        conn = _Configured()
        ConnectorRegistry().discover([conn])
        assert ConnectorRegistry().get("google_drive") is conn
        assert routes.get_connector() is conn

    def test_unconfigured_connector_is_skipped(self, caplog):
        ConnectorRegistry().discover([_Unconfigured()])
        assert ConnectorRegistry().get("google_drive") is None
        assert "skipped" in caplog.text
        with pytest.raises(HTTPException) as excinfo:
            routes.get_connector()
        assert excinfo.value.status_code == 503

    def test_discover_runs_once(self):
        first = _Configured()
        ConnectorRegistry().discover([first])
        ConnectorRegistry().discover([_Configured()])
        assert ConnectorRegistry().get("google_drive") is first
