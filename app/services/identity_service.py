"""
Identity Service - request authentication context and link-target resolution
"""
from dataclasses import dataclass
from typing import Optional, Union
from fastapi import Request
from sqlalchemy.orm import Session
import uuid
import logging

from app.core import session as sess
from app.core.errors import ResolutionError
from . import customer_service

logger = logging.getLogger(__name__)


# ========== Auth context ==========

@dataclass(frozen=True)
class ProviderSession:
    """Session established by a Google or Facebook OAuth login"""
    customer_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    provider: str = "google"


@dataclass(frozen=True)
class BasicSession:
    """Session established by the static-credential login"""
    email: str
    name: Optional[str] = None
    role: str = "user"


@dataclass(frozen=True)
class Anonymous:
    pass


AuthContext = Union[ProviderSession, BasicSession, Anonymous]

PROVIDER_AUTH_TYPES = ("google", "facebook")


def auth_context_from_session(session: dict) -> AuthContext:
    """Collapse the session's authentication signals into one AuthContext"""
    user_info = session.get(sess.USER_INFO) or {}
    if not session.get(sess.AUTHENTICATED) or not user_info:
        return Anonymous()

    auth_type = user_info.get("authType")
    if auth_type in PROVIDER_AUTH_TYPES and user_info.get("customerId"):
        return ProviderSession(
            customer_id=user_info["customerId"],
            email=user_info.get("email"),
            name=user_info.get("name"),
            provider=auth_type,
        )
    if user_info.get("email"):
        return BasicSession(
            email=user_info["email"],
            name=user_info.get("name"),
            role=user_info.get("role") or "user",
        )
    return Anonymous()


def get_auth_context(request: Request) -> AuthContext:
    """FastAPI dependency: auth context of the current request"""
    return auth_context_from_session(request.session)


# ========== Link target resolution ==========

@dataclass
class Resolution:
    customer_id: str
    rule: int
    is_new: bool = False


def placeholder_email(company_id: str) -> str:
    return f"qb-user-{company_id}@temp.local"


def placeholder_name(company_id: str) -> str:
    return f"QuickBooks User {company_id}"


def resolve_link_target(
    db: Session,
    ctx: AuthContext,
    session: dict,
    company_id: Optional[str] = None,
    allow_standalone: bool = True,
) -> Resolution:
    """
    Decide which customer a secondary provider link applies to.

    First match wins:
      1. provider-session user -> their customer id
      2. basic-auth user -> customer with that email, created if missing
      3. session-stored customer id -> used as-is
      4. session-stored temporary linking id -> placeholder customer named
         after the external company id, reused if it already exists
         (allow_standalone only)
      5. otherwise ResolutionError
    """
    if isinstance(ctx, ProviderSession):
        logger.info(f"Linking to {ctx.provider} session customer {ctx.customer_id}")
        return Resolution(ctx.customer_id, rule=1)

    if isinstance(ctx, BasicSession):
        existing = customer_service.get_customer_by_email(db, ctx.email)
        if existing:
            logger.info(f"Found existing customer {existing.id} for basic auth user {ctx.email}")
            return Resolution(existing.id, rule=2)

        customer = customer_service.upsert_customer(
            db, str(uuid.uuid4()), email=ctx.email, name=ctx.name
        )
        logger.info(f"Created customer {customer.id} for basic auth user {ctx.email}")
        return Resolution(customer.id, rule=2, is_new=True)

    customer_id = session.get(sess.CUSTOMER_ID)
    if customer_id:
        logger.info(f"Using session-stored customer id {customer_id}")
        return Resolution(customer_id, rule=3)

    if allow_standalone and session.get(sess.TEMP_QB_AUTH_ID):
        # Re-authorizing a company reuses its placeholder customer
        existing = customer_service.get_customer_by_email(db, placeholder_email(company_id))
        if existing:
            session.pop(sess.TEMP_QB_AUTH_ID, None)
            logger.info(f"Reusing standalone QuickBooks customer {existing.id} (company {company_id})")
            return Resolution(existing.id, rule=4)

        customer = customer_service.upsert_customer(
            db,
            str(uuid.uuid4()),
            email=placeholder_email(company_id),
            name=placeholder_name(company_id),
        )
        session.pop(sess.TEMP_QB_AUTH_ID, None)
        logger.info(f"Created standalone QuickBooks customer {customer.id} (company {company_id})")
        return Resolution(customer.id, rule=4, is_new=True)

    raise ResolutionError("No session identity to link tokens to")
