"""
Shared API dependencies
"""
from datetime import datetime
from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core import get_db, settings
from app.core.errors import ApiError, CustomerNotFound
from app.integrations import ProviderClients
from app.models import Customer
from app.services import customer_service
from app.services.identity_service import AuthContext, ProviderSession, BasicSession, get_auth_context


def get_providers(request: Request) -> ProviderClients:
    """Provider clients built at startup"""
    return request.app.state.providers


def require_customer(customer_id: str, db: Session, **extra) -> Customer:
    customer = customer_service.get_customer(db, customer_id)
    if not customer:
        raise CustomerNotFound(**extra)
    return customer


def require_admin(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Authenticated session whose email is listed in ADMIN_EMAILS"""
    if not isinstance(ctx, (ProviderSession, BasicSession)):
        raise ApiError(401, "not_authenticated", "Authentication required")
    if not ctx.email or ctx.email not in settings.admin_emails:
        raise ApiError(403, "forbidden", "Admin access required")
    return ctx


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
