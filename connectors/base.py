"""
BaseConnector: abstract interface for OAuth2 storage providers.

A connector knows how to send a user to the provider's consent screen, turn
the returned code into tokens, and build an authenticated client that
reports token rotation through an ``on_tokens`` callback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from connectors.schemas import TokenSet

TokenCallback = Callable[[TokenSet], Awaitable[None]]


class BaseConnector(ABC):
    """Abstract base for storage connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug, e.g. 'google_drive'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """OAuth scopes requested at consent time."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """
        Build the provider's authorization URL.

        Parameters
        ----------
        state : str
            Signed state token; the provider hands it back unmodified.
        """
        ...

    @abstractmethod
    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """
        Exchange the authorization code for tokens and the account profile.

        Returns
        -------
        dict with keys:
            access_token, refresh_token, expires_in, scopes,
            provider_account_id, email, name, profile_image
        """
        ...

    @abstractmethod
    def build_client(
        self,
        *,
        access_token: Optional[str],
        refresh_token: Optional[str],
        on_tokens: Optional[TokenCallback] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Return an authenticated client usable as an async context manager."""
        ...

    def is_configured(self) -> bool:
        return True
