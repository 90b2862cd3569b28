"""
Customer API - Google tokens, customer listings, integration status
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core import get_db, settings
from app.core.errors import ApiError, NotLinked, InvalidToken, RefreshFailed
from app.integrations import ProviderClients
from app.models import Customer
from app.services import customer_service, token_service
from .deps import get_providers, require_customer, iso

logger = logging.getLogger(__name__)

customers_router = APIRouter(tags=["customers"])


def _google_auth_url() -> str:
    return settings.auth_url("/auth/google")


def _quickbooks_auth_url() -> str:
    return settings.auth_url("/auth/quickbooks/standalone")


def _summary(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "email": customer.email,
        "name": customer.name,
        "hasGoogleAuth": customer.has_google,
        "createdAt": iso(customer.created_at),
    }


async def _validated_google_customer(customer_id: str, db: Session, providers: ProviderClients):
    """Customer plus a live validation of its Google token, or the matching API error"""
    customer = require_customer(
        customer_id, db,
        message="Customer not found. Please authenticate first.",
        authUrl=_google_auth_url(),
    )
    if not customer.has_google:
        logger.info(f"No Google token for customer {customer_id}")
        raise NotLinked(
            "no_google_token",
            "No Google access token found. Please re-authenticate with Google.",
            authUrl=_google_auth_url(),
        )

    validation = await providers.google.validate_token(customer.google_access_token)
    if not validation.valid:
        logger.info(f"Google token invalid for customer {customer_id}")
        raise InvalidToken(
            "invalid_google_token",
            "Google access token is invalid or expired. Please re-authenticate with Google.",
            authUrl=_google_auth_url(),
        )
    return customer, validation


# ========== Customer listings ==========

@customers_router.get("/customers")
async def list_customers(db: Session = Depends(get_db)):
    return [
        {**_summary(c), "tokenExpiry": iso(c.token_expiry)}
        for c in customer_service.get_customers(db)
    ]


@customers_router.get("/customers/latest")
async def latest_customer(db: Session = Depends(get_db)):
    customers = customer_service.get_customers(db, limit=1)
    if not customers:
        raise ApiError(404, "no_customers", "No customers found")
    return _summary(customers[0])


@customers_router.get("/customers/count")
async def customer_count(db: Session = Depends(get_db)):
    return {"count": customer_service.count_customers(db)}


@customers_router.get("/customers/search")
async def search_customers(email: Optional[str] = Query(None), db: Session = Depends(get_db)):
    if not email:
        raise ApiError(400, "missing_email", "Email parameter required")

    return [
        {
            **_summary(c),
            "hasQuickBooksAuth": c.has_quickbooks,
            "tokenExpiry": iso(c.token_expiry),
            "quickbooksInfo": {
                "connected": c.has_quickbooks,
                "companyId": c.qb_company_id,
                "environment": settings.QB_ENVIRONMENT if c.qb_access_token else None,
            },
        }
        for c in customer_service.search_customers(db, email)
    ]


# ========== Google ==========

@customers_router.get("/customer/{customer_id}")
async def get_customer_google(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer, validation = await _validated_google_customer(customer_id, db, providers)
    return {
        "id": customer.id,
        "email": customer.email,
        "name": customer.name,
        "accessToken": customer.google_access_token,
        "refreshToken": customer.google_refresh_token,
        "scopes": validation.scopes,
        "expiresIn": validation.expires_in,
        "createdAt": iso(customer.created_at),
        "hasGoogleAuth": True,
    }


@customers_router.get("/customer/{customer_id}/google/tokens")
async def get_google_tokens(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer, validation = await _validated_google_customer(customer_id, db, providers)
    return {
        "integration": "google",
        "customer_id": customer.id,
        "email": customer.email,
        "name": customer.name,
        "accessToken": customer.google_access_token,
        "refreshToken": customer.google_refresh_token,
        "scopes": validation.scopes,
        "expiresIn": validation.expires_in,
        "createdAt": iso(customer.created_at),
        "connected": True,
    }


@customers_router.get("/customer/{customer_id}/google/status")
async def get_google_status(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer = require_customer(customer_id, db)
    if not customer.has_google:
        return {
            "integration": "google",
            "connected": False,
            "message": "Google not connected",
            "authUrl": _google_auth_url(),
        }

    validation = await providers.google.validate_token(customer.google_access_token)
    return {
        "integration": "google",
        "connected": validation.valid,
        "expiresIn": validation.expires_in,
        "scopes": validation.scopes,
        "tokenExpiry": iso(customer.token_expiry),
    }


@customers_router.post("/customer/{customer_id}/google/refresh")
async def refresh_google(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer = customer_service.get_customer(db, customer_id)
    if not customer or not customer.google_refresh_token:
        raise ApiError(404, "no_refresh_token", "No Google refresh token found for customer", success=False)

    scopes = customer.scopes
    logger.info(f"Refreshing Google tokens for customer {customer_id}")
    result = await token_service.refresh_google_tokens(db, providers.google, customer)
    if not result.success:
        raise RefreshFailed(
            "Google token refresh failed. Customer may need to re-authenticate.",
            success=False,
            details=result.error,
        )

    return {
        "success": True,
        "accessToken": result.access_token,
        "tokenExpiry": iso(result.expires_at),
        "expiresIn": result.expires_in,
        "scopes": scopes,
        "message": "Google tokens refreshed successfully",
    }


@customers_router.get("/customer/{customer_id}/google/status/live")
async def get_google_live_status(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    """Status label for dashboards, straight from the token-info check"""
    customer = customer_service.get_customer(db, customer_id)
    if not customer or not customer.has_google:
        raise ApiError(404, "no_google_token", "Customer or token not found")

    validation = await providers.google.validate_token(customer.google_access_token)
    if not validation.valid:
        return {"status": "Invalid", "valid": False}
    return {
        "status": f"Valid ({validation.expires_in}s)",
        "valid": True,
        "expires_in": validation.expires_in,
        "email": customer.email,
        "scopes": f"{len(validation.scopes)} scopes",
    }


@customers_router.post("/customer/{customer_id}/refresh-tokens")
async def refresh_tokens_legacy(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    # Older workflows still call this; same refresh, shorter body
    customer = customer_service.get_customer(db, customer_id)
    if not customer or not customer.google_refresh_token:
        raise ApiError(404, "no_refresh_token", "Customer or refresh token not found", success=False)

    result = await token_service.refresh_google_tokens(db, providers.google, customer)
    if not result.success:
        raise RefreshFailed("Token refresh failed", success=False, details=result.error)

    return {
        "success": True,
        "newExpiry": iso(result.expires_at),
        "expiresIn": result.expires_in,
    }


# ========== Other providers ==========

@customers_router.get("/customer/{customer_id}/facebook/status")
async def get_facebook_status(customer_id: str, db: Session = Depends(get_db)):
    customer = require_customer(customer_id, db)
    return {
        "integration": "facebook",
        "connected": customer.is_facebook_user,
        "email": customer.email,
        "name": customer.name,
    }


@customers_router.get("/customer/{customer_id}/tiktok/status")
async def get_tiktok_status(customer_id: str, db: Session = Depends(get_db)):
    customer = require_customer(customer_id, db)
    if not customer.has_tiktok:
        return {
            "integration": "tiktok",
            "connected": False,
            "message": "TikTok not connected",
            "authUrl": settings.auth_url("/auth/tiktok"),
        }
    return {
        "integration": "tiktok",
        "connected": True,
        "userId": customer.tiktok_user_id,
        "tokenExpiry": iso(customer.tiktok_token_expiry),
    }


# ========== Combined status ==========

@customers_router.get("/customer/{customer_id}/integrations")
async def get_integrations(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer = require_customer(customer_id, db)

    google_status = {"integration": "google", "connected": False}
    if customer.has_google:
        validation = await providers.google.validate_token(customer.google_access_token)
        google_status = {
            "integration": "google",
            "connected": validation.valid,
            "expiresIn": validation.expires_in,
            "scopes": validation.scopes,
            "authUrl": _google_auth_url(),
        }

    quickbooks_status = {"integration": "quickbooks", "connected": False}
    if customer.has_quickbooks:
        validation = await providers.quickbooks.validate_token(
            customer.qb_access_token, customer.qb_company_id
        )
        quickbooks_status = {
            "integration": "quickbooks",
            "connected": validation.valid,
            "companyId": customer.qb_company_id,
            "environment": settings.QB_ENVIRONMENT,
            "authUrl": _quickbooks_auth_url(),
        }

    return {
        "customer_id": customer.id,
        "email": customer.email,
        "name": customer.name,
        "integrations": {
            "google": google_status,
            "quickbooks": quickbooks_status,
        },
        "createdAt": iso(customer.created_at),
    }


@customers_router.get("/customer/{customer_id}/integration/{service}/status")
async def integration_status_redirect(customer_id: str, service: str):
    service = service.lower()
    if service == "google":
        return RedirectResponse(url=f"/api/customer/{customer_id}/google/status", status_code=302)
    if service in ("quickbooks", "qb"):
        return RedirectResponse(url=f"/api/customer/{customer_id}/quickbooks/status", status_code=302)
    raise ApiError(
        400,
        "invalid_integration",
        f"Integration '{service}' not supported",
        supported=["google", "quickbooks"],
    )
