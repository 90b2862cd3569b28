"""
Base OAuth Client - Shared plumbing and token value objects for provider integrations
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from datetime import datetime, timedelta
from dataclasses import dataclass, field
import secrets
import httpx
import logging

from app.core.clock import utcnow

logger = logging.getLogger(__name__)


# ========== Provider token sets ==========

@dataclass
class GoogleTokenSet:
    """Google field group of a customer"""
    access_token: str
    refresh_token: Optional[str] = None
    scopes: Optional[str] = None  # space separated
    expires_at: Optional[datetime] = None


@dataclass
class QuickBooksTokenSet:
    """QuickBooks field group of a customer"""
    access_token: str
    refresh_token: Optional[str] = None
    company_id: Optional[str] = None  # Intuit realmId
    expires_at: Optional[datetime] = None
    base_url: Optional[str] = None


@dataclass
class TikTokTokenSet:
    """TikTok field group of a customer"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    user_id: Optional[str] = None


# ========== Provider call results ==========

@dataclass
class TokenGrant:
    """
    Tokens returned by an authorization-code exchange
    """
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    scope: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def expires_at(self) -> datetime:
        return utcnow() + timedelta(seconds=self.expires_in)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "TokenGrant":
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or 3600),
            scope=data.get("scope"),
            extra={
                k: v for k, v in data.items()
                if k not in ("access_token", "refresh_token", "expires_in", "scope")
            },
        )


@dataclass
class TokenValidation:
    """Outcome of a liveness check. Validators never raise."""
    valid: bool
    expires_in: Optional[int] = None
    scopes: List[str] = field(default_factory=list)
    status: Optional[int] = None
    error: Optional[str] = None


@dataclass
class TokenRefresh:
    """Outcome of a refresh-token grant. Refreshers never raise."""
    success: bool
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    error: Optional[str] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.expires_in is None:
            return None
        return utcnow() + timedelta(seconds=self.expires_in)

    @classmethod
    def failed(cls, error: str) -> "TokenRefresh":
        return cls(success=False, error=error)


class ProviderError(Exception):
    """Raised when a provider rejects a code exchange or profile lookup"""

    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class BaseOAuthClient(ABC):
    """
    Abstract base class for OAuth provider integrations
    """
    PROVIDER_NAME: str = "base"
    AUTH_URL: str = ""
    TOKEN_URL: str = ""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    # ========== Authentication ==========

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """
        Build the provider authorization URL the browser is redirected to
        """
        pass

    @abstractmethod
    async def exchange_code(self, code: str) -> TokenGrant:
        """
        Exchange authorization code for tokens
        Raises ProviderError when the provider rejects the code
        """
        pass

    @staticmethod
    def generate_state() -> str:
        """Random anti-replay value for the authorization request"""
        return secrets.token_hex(16)

    # ========== Utilities ==========

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Pull the provider's error description out of a failed response"""
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                return error.get("message") or str(error)
            return data.get("error_description") or data.get("message") or error or f"HTTP {response.status_code}"
        return f"HTTP {response.status_code}"

    def _json_body(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a success response; proxies and captive portals answer 200 with HTML"""
        try:
            data = response.json()
        except ValueError:
            raise ProviderError(
                self.PROVIDER_NAME,
                f"Unexpected non-JSON response (HTTP {response.status_code})",
            )
        if not isinstance(data, dict):
            raise ProviderError(self.PROVIDER_NAME, f"Unexpected response body (HTTP {response.status_code})")
        return data

    def _log_api_call(self, method: str, endpoint: str, status_code: int):
        """Log API call for debugging"""
        logger.info(f"[{self.PROVIDER_NAME}] {method} {endpoint} -> {status_code}")
