"""
Google OAuth Client
Docs: https://developers.google.com/identity/protocols/oauth2/web-server
"""
from typing import Optional, Dict, Any
from urllib.parse import urlencode
import httpx
import logging

from .base import BaseOAuthClient, TokenGrant, TokenValidation, TokenRefresh, ProviderError

logger = logging.getLogger(__name__)


class GoogleOAuthClient(BaseOAuthClient):
    """
    Google Workspace OAuth client (authorization code + refresh token grants)
    """
    PROVIDER_NAME = "google"

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    TOKENINFO_URL = "https://www.googleapis.com/oauth2/v1/tokeninfo"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    REQUIRED_SCOPES = [
        "profile",
        "email",
        "https://www.googleapis.com/auth/drive.file",
        "https://www.googleapis.com/auth/contacts",
        "https://www.googleapis.com/auth/calendar",
    ]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        validate_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(client_id, client_secret, redirect_uri, transport=transport)
        self.validate_timeout = validate_timeout

    # ========== Authorization ==========

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.REQUIRED_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            async with self._client() as client:
                response = await client.post(self.TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise ProviderError(self.PROVIDER_NAME, f"Token exchange failed: {e}") from e

        self._log_api_call("POST", self.TOKEN_URL, response.status_code)
        if not response.is_success:
            raise ProviderError(self.PROVIDER_NAME, self._error_detail(response))

        payload = self._json_body(response)
        if not payload.get("access_token"):
            raise ProviderError(self.PROVIDER_NAME, "No access_token in token response")
        return TokenGrant.from_response(payload)

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        """Fetch the authenticated user's email, name and picture"""
        try:
            async with self._client() as client:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            raise ProviderError(self.PROVIDER_NAME, f"Profile lookup failed: {e}") from e

        self._log_api_call("GET", self.USERINFO_URL, response.status_code)
        if not response.is_success:
            raise ProviderError(self.PROVIDER_NAME, self._error_detail(response))

        data = self._json_body(response)
        if not data.get("email"):
            raise ProviderError(self.PROVIDER_NAME, "Google profile has no email")
        return {
            "email": data["email"],
            "name": data.get("name"),
            "picture": data.get("picture"),
        }

    # ========== Token lifecycle ==========

    async def validate_token(self, access_token: str) -> TokenValidation:
        """
        Check token liveness against the tokeninfo endpoint.
        Any non-success status or network failure means invalid.
        """
        if not access_token:
            return TokenValidation(valid=False, error="Missing access token")

        logger.debug(f"Validating Google token {access_token[:20]}...")
        try:
            async with self._client(timeout=self.validate_timeout) as client:
                response = await client.get(
                    self.TOKENINFO_URL, params={"access_token": access_token}
                )
        except httpx.HTTPError as e:
            logger.warning(f"Google token validation error: {e}")
            return TokenValidation(valid=False, error=str(e))

        if not response.is_success:
            logger.info(f"Google token validation failed: {response.status_code}")
            return TokenValidation(valid=False, status=response.status_code)

        try:
            data = self._json_body(response)
            expires_in = data.get("expires_in")
            expires_in = int(expires_in) if expires_in is not None else None
        except (ProviderError, ValueError) as e:
            logger.warning(f"Google token validation returned an unreadable body: {e}")
            return TokenValidation(valid=False, status=response.status_code, error=str(e))

        scope = data.get("scope") or ""
        return TokenValidation(
            valid=True,
            expires_in=expires_in,
            scopes=scope.split() if scope else [],
            status=response.status_code,
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenRefresh:
        """
        Exchange a refresh token for a new access token.
        Google usually omits refresh_token in the response; callers keep the old one.
        """
        if not refresh_token:
            return TokenRefresh.failed("Missing refresh token")

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            async with self._client() as client:
                response = await client.post(self.TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Google token refresh error: {e}")
            return TokenRefresh.failed(str(e))

        self._log_api_call("POST", self.TOKEN_URL, response.status_code)
        if not response.is_success:
            return TokenRefresh.failed(self._error_detail(response))

        try:
            payload = self._json_body(response)
        except ProviderError as e:
            return TokenRefresh.failed(e.detail)
        if not payload.get("access_token"):
            return TokenRefresh.failed("Invalid refresh response from Google")

        return TokenRefresh(
            success=True,
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=int(payload.get("expires_in") or 3600),
        )
