"""
QuickBooks API - token access and liveness for automation workflows
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.core import get_db, settings
from app.core.errors import ApiError, NotLinked, InvalidToken, RefreshFailed
from app.integrations import ProviderClients
from app.services import customer_service, token_service
from .deps import get_providers, require_customer, iso

logger = logging.getLogger(__name__)

quickbooks_router = APIRouter(prefix="/customer/{customer_id}/quickbooks", tags=["quickbooks"])


def _auth_url() -> str:
    return settings.auth_url("/auth/quickbooks/standalone")


async def _status(customer_id: str, db: Session, providers: ProviderClients) -> dict:
    customer = require_customer(customer_id, db)
    if not customer.qb_access_token:
        return {
            "connected": False,
            "message": "QuickBooks not connected",
            "authUrl": _auth_url(),
        }

    validation = await providers.quickbooks.validate_token(
        customer.qb_access_token, customer.qb_company_id
    )
    return {
        "connected": validation.valid,
        "companyId": customer.qb_company_id,
        "baseUrl": customer.qb_base_url,
        "environment": settings.QB_ENVIRONMENT,
        "tokenValid": validation.valid,
        "tokenExpiry": iso(customer.qb_token_expiry),
    }


@quickbooks_router.get("")
async def get_quickbooks(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    return await _status(customer_id, db, providers)


@quickbooks_router.get("/status")
async def get_quickbooks_status(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    return {"integration": "quickbooks", **await _status(customer_id, db, providers)}


@quickbooks_router.get("/tokens")
async def get_quickbooks_tokens(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer = require_customer(customer_id, db)
    if not customer.has_quickbooks:
        raise NotLinked(
            "quickbooks_not_connected",
            "QuickBooks not connected. Please authorize first.",
            authUrl=_auth_url(),
        )

    validation = await providers.quickbooks.validate_token(
        customer.qb_access_token, customer.qb_company_id
    )
    if not validation.valid:
        raise InvalidToken(
            "invalid_quickbooks_token",
            "QuickBooks token is invalid or expired. Please re-authorize.",
            authUrl=_auth_url(),
        )

    return {
        "integration": "quickbooks",
        "customer_id": customer.id,
        "accessToken": customer.qb_access_token,
        "refreshToken": customer.qb_refresh_token,
        "companyId": customer.qb_company_id,
        "baseUrl": customer.qb_base_url,
        "environment": settings.QB_ENVIRONMENT,
        "tokenExpiry": iso(customer.qb_token_expiry),
        "connected": True,
    }


@quickbooks_router.post("/refresh")
async def refresh_quickbooks(
    customer_id: str,
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    customer = customer_service.get_customer(db, customer_id)
    if not customer or not customer.qb_refresh_token:
        raise ApiError(404, "no_refresh_token", "No refresh token found for customer", success=False)

    logger.info(f"Refreshing QuickBooks tokens for customer {customer_id} ({settings.QB_ENVIRONMENT})")
    result = await token_service.refresh_quickbooks_tokens(db, providers.quickbooks, customer)
    if not result.success:
        raise RefreshFailed(
            "QuickBooks token refresh failed. Customer may need to re-authenticate.",
            success=False,
            details=result.error,
        )

    return {
        "success": True,
        "accessToken": result.access_token,
        "tokenExpiry": iso(result.expires_at),
        "expiresIn": result.expires_in,
        "message": "Tokens refreshed successfully",
    }
