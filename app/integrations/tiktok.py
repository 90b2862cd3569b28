"""
TikTok Login Kit OAuth Client - V2
API Documentation: https://developers.tiktok.com/doc/oauth-user-access-token-management
"""
from typing import Optional, Dict, Any
from urllib.parse import urlencode
import httpx
import logging

from .base import BaseOAuthClient, TokenGrant, TokenRefresh, ProviderError

logger = logging.getLogger(__name__)


class TikTokOAuthClient(BaseOAuthClient):
    """
    TikTok OAuth client - V2
    """
    PROVIDER_NAME = "tiktok"

    # API Endpoints - V2
    AUTH_URL = "https://www.tiktok.com/v2/auth/authorize/"
    TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"

    SCOPES = ["user.info.basic", "video.publish"]

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    # ========== Authentication ==========

    def get_auth_url(self, state: str) -> str:
        """Generate OAuth authorization URL"""
        params = {
            "client_key": self.client_id,
            "scope": ",".join(self.SCOPES),
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the V2 token endpoint; TikTok reports errors in the body"""
        payload = {
            "client_key": self.client_id,
            "client_secret": self.client_secret,
            **data,
        }
        async with self._client() as client:
            response = await client.post(
                self.TOKEN_URL,
                data=payload,
                headers={"Cache-Control": "no-cache"},
            )

        self._log_api_call("POST", self.TOKEN_URL, response.status_code)
        if not response.is_success:
            raise ProviderError(self.PROVIDER_NAME, self._error_detail(response))

        body = self._json_body(response)
        if body.get("error") or not body.get("access_token"):
            raise ProviderError(
                self.PROVIDER_NAME,
                body.get("error_description") or body.get("error") or "No access_token in token response",
            )
        return body

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange authorization code for access token"""
        try:
            body = await self._token_request({
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            })
        except httpx.HTTPError as e:
            raise ProviderError(self.PROVIDER_NAME, f"Token exchange failed: {e}") from e
        return TokenGrant.from_response(body)

    async def refresh_access_token(self, refresh_token: Optional[str]) -> TokenRefresh:
        """Refresh access token"""
        if not refresh_token:
            return TokenRefresh.failed("Missing refresh token")

        try:
            body = await self._token_request({
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            })
        except (httpx.HTTPError, ProviderError) as e:
            logger.error(f"TikTok token refresh failed: {e}")
            return TokenRefresh.failed(getattr(e, "detail", str(e)))

        return TokenRefresh(
            success=True,
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_in=int(body.get("expires_in") or 86400),
        )
