"""
Token Service - merge provider tokens onto customers, disconnect, refresh
"""
from typing import Optional
from sqlalchemy.orm import Session
import uuid
import logging

from app.core.errors import CustomerNotFoundError
from app.integrations import (
    GoogleOAuthClient, QuickBooksOAuthClient, FacebookProfile,
    GoogleTokenSet, QuickBooksTokenSet, TikTokTokenSet, TokenGrant, TokenRefresh,
)
from app.models.customer import Customer
from . import customer_service

logger = logging.getLogger(__name__)


def _link(db: Session, customer_id: str, provider: str, token_set) -> None:
    if not customer_service.update_provider_tokens(db, customer_id, provider, token_set):
        raise CustomerNotFoundError(customer_id)


# ========== Google ==========

def google_token_set(grant: TokenGrant) -> GoogleTokenSet:
    return GoogleTokenSet(
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        scopes=grant.scope or " ".join(GoogleOAuthClient.REQUIRED_SCOPES),
        expires_at=grant.expires_at,
    )


def link_google_identity(db: Session, profile: dict, grant: TokenGrant) -> Customer:
    """
    Attach a Google login to the customer with the same email, or create one.

    An existing customer only has its Google group (and profile) replaced,
    so QuickBooks and TikTok links survive a repeat Google login.
    """
    token_set = google_token_set(grant)
    existing = customer_service.get_customer_by_email(db, profile["email"])

    if existing:
        customer_id = existing.id
        _link(db, customer_id, "google", token_set)
        customer_service.update_profile(
            db, customer_id, name=profile.get("name"), picture=profile.get("picture")
        )
        logger.info(f"Updated Google tokens for existing customer {customer_id} ({profile['email']})")
        return customer_service.get_customer(db, customer_id)

    customer = customer_service.upsert_customer(
        db,
        str(uuid.uuid4()),
        email=profile["email"],
        name=profile.get("name"),
        picture=profile.get("picture"),
        google=token_set,
    )
    logger.info(f"Created Google customer {customer.id} ({profile['email']})")
    return customer


def disconnect_google(db: Session, customer_id: str) -> int:
    return customer_service.update_provider_tokens(db, customer_id, "google", None)


async def refresh_google_tokens(db: Session, client: GoogleOAuthClient, customer: Customer) -> TokenRefresh:
    """Refresh and persist; a missing refresh_token in the response keeps the old one"""
    customer_id = customer.id
    old = customer.token_set("google")
    old_refresh = customer.google_refresh_token

    result = await client.refresh_access_token(old_refresh)
    if not result.success:
        logger.warning(f"Google refresh failed for customer {customer_id}: {result.error}")
        return result

    _link(db, customer_id, "google", GoogleTokenSet(
        access_token=result.access_token,
        refresh_token=result.refresh_token or old_refresh,
        scopes=old.scopes if old else None,
        expires_at=result.expires_at,
    ))
    logger.info(f"Google tokens refreshed for customer {customer_id}")
    return result


# ========== Facebook ==========

def facebook_customer_id(profile_id: str) -> str:
    return f"fb_{profile_id}"


def link_facebook_identity(db: Session, profile: FacebookProfile) -> Customer:
    """Whole-row upsert keyed by fb_<id>; other provider groups are reset"""
    return customer_service.upsert_customer(
        db,
        facebook_customer_id(profile.id),
        email=profile.email,
        name=profile.name,
        picture=profile.picture,
    )


def disconnect_facebook(db: Session, customer_id: str) -> bool:
    """Facebook identities have nothing to fall back to, so the row goes"""
    return customer_service.delete_customer(db, customer_id)


# ========== QuickBooks ==========

def quickbooks_token_set(grant: TokenGrant, company_id: str, base_url: str) -> QuickBooksTokenSet:
    return QuickBooksTokenSet(
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        company_id=company_id,
        expires_at=grant.expires_at,
        base_url=base_url,
    )


def link_quickbooks_tokens(db: Session, customer_id: str, token_set: QuickBooksTokenSet) -> None:
    """Replace only the QuickBooks group. Raises CustomerNotFoundError for unknown ids"""
    _link(db, customer_id, "quickbooks", token_set)
    logger.info(f"QuickBooks connected for customer {customer_id} (company {token_set.company_id})")


def disconnect_quickbooks(db: Session, customer_id: str) -> int:
    return customer_service.update_provider_tokens(db, customer_id, "quickbooks", None)


def disconnect_quickbooks_by_company(db: Session, company_id: str) -> Optional[str]:
    """Provider-initiated disconnect. Returns the affected customer id, if any"""
    customer = customer_service.get_customer_by_company_id(db, company_id)
    if not customer:
        logger.info(f"No customer linked to QuickBooks company {company_id}")
        return None

    customer_id = customer.id
    disconnect_quickbooks(db, customer_id)
    logger.info(f"QuickBooks disconnected for customer {customer_id} (company {company_id})")
    return customer_id


async def refresh_quickbooks_tokens(db: Session, client: QuickBooksOAuthClient, customer: Customer) -> TokenRefresh:
    """Refresh and persist; company id and base url are carried over"""
    customer_id = customer.id
    old = customer.token_set("quickbooks")
    old_refresh = customer.qb_refresh_token

    result = await client.refresh_using_token(old_refresh)
    if not result.success:
        logger.warning(f"QuickBooks refresh failed for customer {customer_id}: {result.error}")
        return result

    _link(db, customer_id, "quickbooks", QuickBooksTokenSet(
        access_token=result.access_token,
        refresh_token=result.refresh_token or old_refresh,
        company_id=old.company_id if old else None,
        expires_at=result.expires_at,
        base_url=(old.base_url if old else None) or client.base_url,
    ))
    logger.info(f"QuickBooks tokens refreshed for customer {customer_id}")
    return result


# ========== TikTok ==========

def link_tiktok_tokens(db: Session, customer_id: str, grant: TokenGrant) -> None:
    _link(db, customer_id, "tiktok", TikTokTokenSet(
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        expires_at=grant.expires_at,
        user_id=grant.extra.get("open_id"),
    ))
    logger.info(f"TikTok connected for customer {customer_id}")
