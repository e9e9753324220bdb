"""
ConnectorRegistry: provides access to the configured storage connectors.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from connectors.base import BaseConnector
from connectors.google_drive import GoogleDriveConnector

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Singleton registry for storage connectors."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
            cls._instance._discovered = False
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def discover(self, connectors: Optional[List[BaseConnector]] = None) -> None:
        """Register every configured connector (Google Drive by default)."""
        if self._discovered:
            return
        for conn in connectors if connectors is not None else [GoogleDriveConnector()]:
            if conn.is_configured():
                self._connectors[conn.provider_name] = conn
                logger.info("Connector registered: %s (%s)", conn.display_name, conn.provider_name)
            else:
                logger.warning(
                    "Connector %s skipped: not configured (missing client_id/secret)",
                    conn.provider_name,
                )
        self._discovered = True

    def get(self, provider: str) -> Optional[BaseConnector]:
        return self._connectors.get(provider)
