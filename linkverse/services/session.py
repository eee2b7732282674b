"""Auth session against the BaaS auth endpoint (GoTrue-compatible).

Linkverse runs for a single signed-in owner, so the session holds one access
token in memory. The data gateway asks it for request headers and gets
``AuthRequired`` when nobody is signed in.
"""

import time
from typing import Any, Dict, Optional

import httpx

from linkverse.core.config import Settings
from linkverse.core.errors import AuthRequired, NetworkOrServiceError
from linkverse.core.logging import get_logger
from linkverse.models.entities import AuthUser

logger = get_logger(__name__)

# Refresh the access token this many seconds before it expires.
REFRESH_MARGIN_SECONDS = 60


class AuthSession:
    """Holds the signed-in user's tokens and talks to ``/auth/v1``."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.expires_at: Optional[float] = None
        self.user: Optional[AuthUser] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.settings.baas_url}/auth/v1",
                timeout=self.settings.http_timeout,
                transport=self._transport,
            )
        return self._client

    async def shutdown(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None and self.user is not None

    def _base_headers(self) -> Dict[str, str]:
        return {"apikey": self.settings.baas_anon_key}

    async def _post(self, path: str, payload: Dict[str, Any],
                    params: Optional[Dict[str, str]] = None,
                    headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            response = await self.client.post(
                path, json=payload, params=params,
                headers={**self._base_headers(), **(headers or {})},
            )
        except httpx.HTTPError as e:
            raise NetworkOrServiceError("auth", str(e))

        if response.status_code in (400, 401, 403, 422):
            message = _error_message(response) or "Authentication failed"
            raise AuthRequired(message)
        if response.status_code >= 300:
            raise NetworkOrServiceError("auth", f"HTTP {response.status_code}", response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise NetworkOrServiceError("auth", "Invalid JSON response")

    def _store(self, data: Dict[str, Any]) -> None:
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token") or self.refresh_token
        expires_in = data.get("expires_in")
        self.expires_at = time.time() + float(expires_in) if expires_in else None
        if data.get("user"):
            self.user = AuthUser.model_validate(data["user"])

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.expires_at = None
        self.user = None

    async def sign_in(self, email: str, password: str) -> AuthUser:
        """Sign in with email and password."""
        data = await self._post(
            "/token", {"email": email.strip().lower(), "password": password},
            params={"grant_type": "password"},
        )
        self._store(data)
        if not self.is_authenticated:
            self.clear()
            raise AuthRequired("Sign-in response did not include a session")
        logger.info("Signed in", user_id=self.user.id)
        return self.user

    async def sign_up(self, email: str, password: str, full_name: str) -> Optional[AuthUser]:
        """Register a new account.

        Returns the user if the backend auto-confirms and opens a session,
        otherwise None (email confirmation pending).
        """
        data = await self._post("/signup", {
            "email": email.strip().lower(),
            "password": password,
            "data": {"full_name": full_name.strip()},
        })
        if data.get("access_token"):
            self._store(data)
            logger.info("Signed up and signed in", user_id=self.user.id)
            return self.user
        logger.info("Signed up, confirmation pending", email=email)
        return None

    async def sign_out(self) -> None:
        """End the session locally and, best effort, on the server."""
        token = self.access_token
        self.clear()
        if not token:
            return
        try:
            await self._post("/logout", {}, headers={"Authorization": f"Bearer {token}"})
        except (AuthRequired, NetworkOrServiceError) as e:
            logger.warning("Server-side logout failed", error=str(e))
        logger.info("Signed out")

    async def refresh(self) -> None:
        if not self.refresh_token:
            self.clear()
            raise AuthRequired("Session expired")
        try:
            data = await self._post(
                "/token", {"refresh_token": self.refresh_token},
                params={"grant_type": "refresh_token"},
            )
        except AuthRequired:
            self.clear()
            raise
        self._store(data)
        logger.debug("Access token refreshed")

    def current_user(self) -> Optional[AuthUser]:
        return self.user

    def require_user(self) -> AuthUser:
        if not self.is_authenticated:
            raise AuthRequired()
        return self.user

    async def auth_headers(self) -> Dict[str, str]:
        """Headers for an authenticated REST call, refreshing the token if due."""
        self.require_user()
        if self.expires_at is not None and time.time() > self.expires_at - REFRESH_MARGIN_SECONDS:
            await self.refresh()
        return {**self._base_headers(), "Authorization": f"Bearer {self.access_token}"}


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error_description") or body.get("msg") or body.get("message") or body.get("error")
    return None
