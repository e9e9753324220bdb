"""
GoogleDriveConnector: OAuth2 web flow and an authenticated Drive v3 client.

The client refreshes its access token when it has none or when the API
answers 401, and reports every token pair Google returns through the
``on_tokens`` callback before retrying the call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector, TokenCallback
from connectors.errors import ProviderError
from connectors.schemas import TokenSet
from utils.log_sanitizer import sanitize_for_logging

logger = logging.getLogger(__name__)

_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
_DRIVE_API = "https://www.googleapis.com/drive/v3"

_FILE_FIELDS = (
    "nextPageToken, files(id, name, mimeType, description, starred, trashed, parents, "
    "createdTime, modifiedTime, webViewLink, size, shared)"
)


def _provider_error(resp: httpx.Response, endpoint: str) -> ProviderError:
    error_code: Optional[str] = None
    description = resp.reason_phrase
    try:
        body = resp.json()
    except ValueError:
        body = None
    if body is not None:
        logger.debug("Google %s error body: %s", endpoint, sanitize_for_logging(body))
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, str):
            error_code = err
            description = body.get("error_description") or description
        elif isinstance(err, dict):
            description = err.get("message") or description
            reasons = [e.get("reason") for e in err.get("errors", []) if isinstance(e, dict)]
            error_code = next((r for r in reasons if r), None) or err.get("status")
    message = f"{error_code}: {description}" if error_code else f"HTTP {resp.status_code}: {description}"
    return ProviderError(message, status_code=resp.status_code, error_code=error_code, endpoint=endpoint)


class DriveClient:
    """Authenticated Drive client bound to one account's tokens."""

    def __init__(
        self,
        *,
        access_token: Optional[str],
        refresh_token: Optional[str],
        client_id: str,
        client_secret: str,
        on_tokens: Optional[TokenCallback] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._client_id = client_id
        self._client_secret = client_secret
        self._on_tokens = on_tokens
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=timeout or config.provider_timeout_seconds,
        )

    async def __aenter__(self) -> "DriveClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Tokens ──────────────────────────────────────────────────────────

    async def refresh(self) -> TokenSet:
        """Trade the refresh token for a new access token and notify ``on_tokens``."""
        if not self._refresh_token:
            raise ProviderError(
                "invalid_grant: no refresh token available",
                status_code=400,
                error_code="invalid_grant",
                endpoint="token",
            )
        resp = await self._http.post(
            _GOOGLE_TOKEN_URL,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if resp.status_code >= 400:
            raise _provider_error(resp, "token")

        tokens = TokenSet.model_validate(resp.json())
        if tokens.access_token:
            self._access_token = tokens.access_token
        if tokens.refresh_token:
            self._refresh_token = tokens.refresh_token
        if self._on_tokens is not None:
            await self._on_tokens(tokens)
        return tokens

    # ── Requests ────────────────────────────────────────────────────────

    async def request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        if not self._access_token:
            await self.refresh()
        resp = await self._send(method, url, **kwargs)
        if resp.status_code == 401 and self._refresh_token:
            logger.debug("Access token rejected, refreshing")
            await self.refresh()
            resp = await self._send(method, url, **kwargs)
        if resp.status_code >= 400:
            raise _provider_error(resp, "api")
        if not resp.content:
            return {}
        return resp.json()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self._access_token}"
        return await self._http.request(method, url, headers=headers, **kwargs)

    # ── Drive operations ────────────────────────────────────────────────

    async def get_about_quota(self) -> Dict[str, int]:
        data = await self.request("GET", f"{_DRIVE_API}/about", params={"fields": "storageQuota"})
        quota = data.get("storageQuota") or {}
        return {
            "used": int(quota.get("usage") or 0),
            "total": int(quota.get("limit") or 0),
            "usage_in_drive": int(quota.get("usageInDrive") or 0),
            "usage_in_drive_trash": int(quota.get("usageInDriveTrash") or 0),
        }

    async def list_files(self, page_size: int = 100) -> List[Dict[str, Any]]:
        files: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"pageSize": page_size, "fields": _FILE_FIELDS}
            if page_token:
                params["pageToken"] = page_token
            data = await self.request("GET", f"{_DRIVE_API}/files", params=params)
            files.extend(data.get("files") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                return files

    async def get_profile(self) -> Dict[str, Any]:
        return await self.request("GET", _GOOGLE_USERINFO_URL)


class GoogleDriveConnector(BaseConnector):
    """OAuth2 connector for Google Drive."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "google_drive"

    @property
    def display_name(self) -> str:
        return "Google Drive"

    @property
    def scopes(self) -> List[str]:
        return [
            "https://www.googleapis.com/auth/drive",
            "https://www.googleapis.com/auth/userinfo.email",
            "https://www.googleapis.com/auth/userinfo.profile",
        ]

    def is_configured(self) -> bool:
        return bool(config.google_client_id and config.google_client_secret)

    def _redirect_uri(self) -> str:
        return f"{config.oauth_redirect_base}/api/v1/drive/callback"

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": config.google_client_id,
            "redirect_uri": self._redirect_uri(),
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """Exchange auth code for tokens, then read the Google profile."""
        async with httpx.AsyncClient(transport=self._transport, timeout=config.provider_timeout_seconds) as client:
            token_resp = await client.post(
                _GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": config.google_client_id,
                    "client_secret": config.google_client_secret,
                    "redirect_uri": self._redirect_uri(),
                    "grant_type": "authorization_code",
                },
            )
            if token_resp.status_code >= 400:
                raise _provider_error(token_resp, "token")
            token_data = token_resp.json()

            headers = {"Authorization": f"Bearer {token_data['access_token']}"}
            user_resp = await client.get(_GOOGLE_USERINFO_URL, headers=headers)
            if user_resp.status_code >= 400:
                raise _provider_error(user_resp, "api")
            user_info = user_resp.json()

        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": token_data.get("expires_in", 3600),
            "scopes": token_data.get("scope", "").split(),
            "provider_account_id": user_info.get("id") or user_info.get("email", ""),
            "email": user_info.get("email", ""),
            "name": user_info.get("name") or user_info.get("email", ""),
            "profile_image": user_info.get("picture"),
        }

    def build_client(
        self,
        *,
        access_token: Optional[str],
        refresh_token: Optional[str],
        on_tokens: Optional[TokenCallback] = None,
        timeout: Optional[float] = None,
    ) -> DriveClient:
        return DriveClient(
            access_token=access_token,
            refresh_token=refresh_token,
            client_id=config.google_client_id,
            client_secret=config.google_client_secret,
            on_tokens=on_tokens,
            transport=self._transport,
            timeout=timeout,
        )
