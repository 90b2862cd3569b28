"""
Facebook Login OAuth Client
Docs: https://developers.facebook.com/docs/facebook-login/guides/advanced/manual-flow
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode
import httpx
import logging

from .base import BaseOAuthClient, TokenGrant, ProviderError

logger = logging.getLogger(__name__)


@dataclass
class FacebookProfile:
    id: str
    email: str
    name: str
    picture: Optional[str] = None


class FacebookOAuthClient(BaseOAuthClient):
    """
    Facebook Login client: code exchange and Graph profile lookup
    """
    PROVIDER_NAME = "facebook"

    GRAPH_VERSION = "v18.0"
    AUTH_URL = f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth"
    TOKEN_URL = f"https://graph.facebook.com/{GRAPH_VERSION}/oauth/access_token"
    PROFILE_URL = f"https://graph.facebook.com/{GRAPH_VERSION}/me"

    PROFILE_FIELDS = "id,email,first_name,last_name,picture.type(large)"

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "email",
            "state": state,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        params = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "code": code,
        }
        try:
            async with self._client() as client:
                response = await client.get(self.TOKEN_URL, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(self.PROVIDER_NAME, f"Token exchange failed: {e}") from e

        self._log_api_call("GET", self.TOKEN_URL, response.status_code)
        if not response.is_success:
            raise ProviderError(self.PROVIDER_NAME, self._error_detail(response))

        payload = self._json_body(response)
        if not payload.get("access_token"):
            raise ProviderError(self.PROVIDER_NAME, "No access_token in token response")
        return TokenGrant.from_response(payload)

    async def get_profile(self, access_token: str) -> FacebookProfile:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.PROFILE_URL,
                    params={"fields": self.PROFILE_FIELDS, "access_token": access_token},
                )
        except httpx.HTTPError as e:
            raise ProviderError(self.PROVIDER_NAME, f"Profile lookup failed: {e}") from e

        self._log_api_call("GET", self.PROFILE_URL, response.status_code)
        if not response.is_success:
            raise ProviderError(self.PROVIDER_NAME, self._error_detail(response))

        data = self._json_body(response)
        profile_id = str(data.get("id") or "")
        if not profile_id:
            raise ProviderError(self.PROVIDER_NAME, "Facebook profile has no id")

        # Accounts registered by phone have no email
        email = data.get("email") or f"fb_{profile_id}@facebook.com"
        name = " ".join(p for p in (data.get("first_name"), data.get("last_name")) if p)
        picture = (data.get("picture") or {}).get("data", {}).get("url")

        return FacebookProfile(id=profile_id, email=email, name=name or email, picture=picture)
