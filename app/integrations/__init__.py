# Provider Integrations Package
from dataclasses import dataclass

from .base import (
    BaseOAuthClient, ProviderError, TokenGrant, TokenValidation, TokenRefresh,
    GoogleTokenSet, QuickBooksTokenSet, TikTokTokenSet,
)
from .google import GoogleOAuthClient
from .facebook import FacebookOAuthClient, FacebookProfile
from .quickbooks import QuickBooksOAuthClient
from .tiktok import TikTokOAuthClient


@dataclass
class ProviderClients:
    """One configured client per provider, built once at startup"""
    google: GoogleOAuthClient
    facebook: FacebookOAuthClient
    quickbooks: QuickBooksOAuthClient
    tiktok: TikTokOAuthClient


def build_providers(settings) -> ProviderClients:
    """Create provider clients from application settings"""
    return ProviderClients(
        google=GoogleOAuthClient(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_CALLBACK_URL,
            validate_timeout=settings.GOOGLE_VALIDATE_TIMEOUT,
        ),
        facebook=FacebookOAuthClient(
            client_id=settings.FB_APP_ID,
            client_secret=settings.FB_APP_SECRET,
            redirect_uri=settings.FB_CALLBACK_URL,
        ),
        quickbooks=QuickBooksOAuthClient(
            client_id=settings.QB_CLIENT_ID,
            client_secret=settings.QB_CLIENT_SECRET,
            redirect_uri=settings.QB_CALLBACK_URL,
            environment=settings.QB_ENVIRONMENT,
            validate_timeout=settings.QB_VALIDATE_TIMEOUT,
        ),
        tiktok=TikTokOAuthClient(
            client_id=settings.TIKTOK_CLIENT_ID,
            client_secret=settings.TIKTOK_CLIENT_SECRET,
            redirect_uri=settings.TIKTOK_REDIRECT_URI,
        ),
    )


__all__ = [
    "BaseOAuthClient",
    "ProviderError",
    "TokenGrant",
    "TokenValidation",
    "TokenRefresh",
    "GoogleTokenSet",
    "QuickBooksTokenSet",
    "TikTokTokenSet",
    "GoogleOAuthClient",
    "FacebookOAuthClient",
    "FacebookProfile",
    "QuickBooksOAuthClient",
    "TikTokOAuthClient",
    "ProviderClients",
    "build_providers",
]
