"""
Microsoft identity platform client (OAuth2 authorization-code flow).

Builds the authorize URL, exchanges authorization codes for tokens and
reads the signed-in user's profile from Microsoft Graph.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlencode

import httpx

from backend.app.core.config import settings

logger = logging.getLogger("checklist.auth")


class IdentityProviderError(Exception):
    """Token exchange or profile lookup failed."""


@dataclass(frozen=True)
class IdentityTokens:
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_in: Optional[int] = None


@dataclass(frozen=True)
class IdentityProfile:
    external_id: str
    email: str
    display_name: str


class IdentityProviderClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        tenant_id: str,
        redirect_uri: str,
        scopes: List[str],
        authority_host: str = "https://login.microsoftonline.com",
        graph_me_url: str = "https://graph.microsoft.com/v1.0/me",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self.authority_host = authority_host.rstrip("/")
        self.graph_me_url = graph_me_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "IdentityProviderClient":
        return cls(
            client_id=settings.azure_client_id,
            client_secret=settings.azure_client_secret,
            tenant_id=settings.azure_tenant_id,
            redirect_uri=settings.redirect_uri,
            scopes=settings.scope_list,
            authority_host=settings.identity_authority_host,
            graph_me_url=settings.graph_me_url,
            timeout=settings.identity_timeout_seconds,
        )

    @property
    def authority(self) -> str:
        return f"{self.authority_host}/{self.tenant_id}"

    @property
    def token_url(self) -> str:
        return f"{self.authority}/oauth2/v2.0/token"

    def authorize_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "response_mode": "query",
            "scope": " ".join(self.scopes),
        }
        if state:
            params["state"] = state
        return f"{self.authority}/oauth2/v2.0/authorize?{urlencode(params)}"

    def public_config(self) -> dict:
        """Values the browser needs to start a login."""
        return {
            "client_id": self.client_id,
            "tenant_id": self.tenant_id,
            "authority": self.authority,
            "redirect_uri": self.redirect_uri,
            "scopes": self.scopes,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def exchange_code(self, code: str) -> IdentityTokens:
        """Exchange an authorization code for access/refresh tokens."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.token_url,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": self.redirect_uri,
                        "scope": " ".join(self.scopes),
                    },
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Token exchange failed: %s", exc)
            raise IdentityProviderError("Token exchange failed") from exc

        if not isinstance(data, dict) or not data.get("access_token"):
            raise IdentityProviderError("Token response carried no access token")

        return IdentityTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_in=data.get("expires_in"),
        )

    async def fetch_profile(self, access_token: str) -> IdentityProfile:
        """Read id, mail and display name of the signed-in user."""
        try:
            async with self._client() as client:
                resp = await client.get(
                    self.graph_me_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Profile lookup failed: %s", exc)
            raise IdentityProviderError("Profile lookup failed") from exc

        if not isinstance(data, dict):
            raise IdentityProviderError("Profile response is not an object")

        email = (data.get("mail") or data.get("userPrincipalName") or "").strip().lower()
        external_id = data.get("id")
        if not email or not external_id:
            raise IdentityProviderError("Profile is missing id or email")

        return IdentityProfile(
            external_id=external_id,
            email=email,
            display_name=data.get("displayName") or email,
        )


def get_identity_provider() -> IdentityProviderClient:
    """FastAPI dependency; overridden in tests."""
    return IdentityProviderClient.from_settings()
