"""
Admin API - customer overview and hard delete
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.core import get_db
from app.core.errors import CustomerNotFound
from app.integrations import ProviderClients
from app.services import customer_service
from .deps import get_providers, require_admin, iso

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@admin_router.get("/customers")
async def admin_customers(
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    rows = []
    for customer in customer_service.get_customers(db):
        google_status = "Not Connected"
        if customer.has_google:
            validation = await providers.google.validate_token(customer.google_access_token)
            if validation.valid:
                google_status = f"Valid ({validation.expires_in}s)"
            else:
                google_status = "Invalid/Expired"

        qb_status = "Not Connected"
        if customer.has_quickbooks:
            validation = await providers.quickbooks.validate_token(
                customer.qb_access_token, customer.qb_company_id
            )
            qb_status = "Connected" if validation.valid else "Invalid/Expired"

        rows.append({
            "id": customer.id,
            "email": customer.email,
            "name": customer.name,
            "googleStatus": google_status,
            "quickbooksStatus": qb_status,
            "companyId": customer.qb_company_id,
            "createdAt": iso(customer.created_at),
        })

    return {"customers": rows, "total": len(rows)}


@admin_router.delete("/customer/{customer_id}")
async def admin_delete_customer(customer_id: str, db: Session = Depends(get_db)):
    customer = customer_service.get_customer(db, customer_id)
    if not customer:
        raise CustomerNotFound()

    email = customer.email
    customer_service.delete_customer(db, customer_id)
    logger.info(f"Customer deleted: {email}")

    return {
        "success": True,
        "message": "Customer deleted successfully",
        "customerEmail": email,
    }
