"""
Authentication API - basic login, provider OAuth flows, disconnects
"""
from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import urlencode
import bcrypt
import uuid
import logging

from app.core import get_db, settings
from app.core import session as sess
from app.core.errors import CustomerNotFoundError, ResolutionError, SessionError
from app.integrations import ProviderClients, ProviderError
from app.services import customer_service, token_service
from app.services.identity_service import (
    AuthContext, Anonymous, BasicSession, ProviderSession,
    get_auth_context, resolve_link_target,
)
from .deps import get_providers, iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

STORE_ERRORS = (CustomerNotFoundError, SQLAlchemyError)

QB_ERROR_MESSAGES = {
    "auth_failed": "Authorization failed. Please try again.",
    "session_lost": "Session expired. Please start the authorization process again.",
    "token_save_failed": "Failed to save authorization tokens. Please try again.",
}


# ============== Helper Functions ==============

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash using bcrypt"""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def _redirect(path: str, **params) -> RedirectResponse:
    url = f"{path}?{urlencode(params)}" if params else path
    return RedirectResponse(url=url, status_code=302)


def _check_state(request: Request, provider: str, state: Optional[str]) -> Optional[str]:
    """Failure reason for the callback's state value, or None when it matches"""
    expected = sess.pop_oauth_state(request, provider)
    if expected is None:
        return "session_lost"
    if state != expected:
        logger.warning(f"{provider} callback state mismatch")
        return "auth_failed"
    return None


def _start_flow(request: Request, provider: str, client) -> RedirectResponse:
    state = client.generate_state()
    sess.store_oauth_state(request, provider, state)
    return RedirectResponse(url=client.get_auth_url(state), status_code=302)


def _session_customer(db: Session, ctx: AuthContext):
    if isinstance(ctx, ProviderSession):
        return customer_service.get_customer(db, ctx.customer_id)
    if isinstance(ctx, BasicSession):
        return customer_service.get_customer_by_email(db, ctx.email)
    return None


# ============== Basic Auth ==============

@router.get("/login")
async def login_page(
    request: Request,
    error: Optional[str] = Query(None),
    google_error: Optional[str] = Query(None),
    fb_error: Optional[str] = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
):
    return {
        "authenticated": not isinstance(ctx, Anonymous),
        "options": {
            "google": "/auth/google",
            "facebook": "/auth/facebook",
            "quickbooks": "/auth/quickbooks/standalone",
            "basic": "/login",
        },
        "error": error,
        "googleError": google_error,
        "fbError": fb_error,
    }


@router.post("/login")
async def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
):
    user = settings.basic_auth_users.get(username)
    if not user or not verify_password(password, user.get("password_hash", "")):
        logger.info(f"Basic auth failed for: {username}")
        return _redirect("/login", error="1")

    user_info = {
        "email": username,
        "name": user.get("name") or username,
        "role": user.get("role") or "user",
        "authType": "basic",
    }
    try:
        sess.establish_session(request, user_info)
    except SessionError as e:
        logger.error(f"Session save error for basic auth: {e}")
        return _redirect("/login", error="session_failed")

    logger.info(f"Basic auth successful for: {username} Role: {user_info['role']}")
    return _redirect("/dashboard")


@router.get("/logout")
async def logout(request: Request, ctx: AuthContext = Depends(get_auth_context)):
    logger.info(f"Logging out user: {getattr(ctx, 'email', None)}")
    sess.clear_session(request)
    return _redirect("/login")


@router.get("/dashboard")
async def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    if isinstance(ctx, Anonymous):
        return _redirect("/login")

    customer = _session_customer(db, ctx)
    return {
        "user": request.session.get(sess.USER_INFO),
        "customer": {
            "id": customer.id,
            "email": customer.email,
            "name": customer.name,
            "google": customer.has_google,
            "quickbooks": customer.has_quickbooks,
            "tiktok": customer.has_tiktok,
            "createdAt": iso(customer.created_at),
        } if customer else None,
        "notices": dict(request.query_params),
    }


@router.get("/auth-result")
async def auth_result(
    qb_success: Optional[str] = Query(None),
    qb_error: Optional[str] = Query(None),
    google_success: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    customer = customer_service.get_customer(db, customer_id) if customer_id else None

    if customer and (qb_success or google_success):
        return {
            "success": True,
            "integration": "quickbooks" if qb_success else "google",
            "customer_id": customer.id,
            "email": customer.email,
            "companyId": customer.qb_company_id,
            "environment": settings.QB_ENVIRONMENT,
            "hasGoogle": customer.has_google,
            "hasQuickBooks": customer.has_quickbooks,
        }

    return {
        "success": False,
        "error": qb_error,
        "message": QB_ERROR_MESSAGES.get(qb_error, "Unknown error occurred"),
    }


# ============== Google ==============

@router.get("/auth/google")
async def google_auth(request: Request, providers: ProviderClients = Depends(get_providers)):
    return _start_flow(request, "google", providers.google)


@router.get("/auth/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    if error or not code:
        logger.warning(f"Google OAuth error: {error or 'missing code'}")
        return _redirect("/login", google_error="auth_failed")

    reason = _check_state(request, "google", state)
    if reason:
        return _redirect("/login", google_error=reason)

    try:
        grant = await providers.google.exchange_code(code)
        profile = await providers.google.get_user_info(grant.access_token)
    except ProviderError as e:
        logger.error(f"Google OAuth failed: {e}")
        return _redirect("/login", google_error="auth_failed")

    try:
        customer = token_service.link_google_identity(db, profile, grant)
    except STORE_ERRORS as e:
        logger.error(f"Failed to store Google tokens for {profile['email']}: {e}")
        return _redirect("/login", google_error="token_save_failed")

    user_info = {
        "email": customer.email,
        "name": customer.name,
        "role": "google_user",
        "customerId": customer.id,
        "authType": "google",
        "googleConnected": True,
    }
    try:
        sess.establish_session(request, user_info, customer_id=customer.id)
    except SessionError as e:
        logger.error(f"Session save error: {e}")
        return _redirect("/login", error="session_failed")

    logger.info(f"Google OAuth callback successful for: {customer.email} ({customer.id})")
    return _redirect("/dashboard")


@router.post("/auth/google/disconnect")
async def google_disconnect(
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    if not isinstance(ctx, ProviderSession) or ctx.provider != "google":
        return JSONResponse(status_code=401, content={"error": "Not authenticated"})

    logger.info(f"Disconnecting Google for user: {ctx.email}")
    token_service.disconnect_google(db, ctx.customer_id)

    user_info = dict(request.session.get(sess.USER_INFO) or {})
    user_info["googleConnected"] = False
    request.session[sess.USER_INFO] = user_info

    return {"success": True, "message": "Google disconnected successfully"}


# ============== Facebook ==============

@router.get("/auth/facebook")
async def facebook_auth(request: Request, providers: ProviderClients = Depends(get_providers)):
    return _start_flow(request, "facebook", providers.facebook)


@router.get("/auth/facebook/callback")
async def facebook_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
):
    if error or not code:
        logger.warning(f"Facebook OAuth error: {error or 'missing code'}")
        return _redirect("/login", fb_error="auth_failed")

    reason = _check_state(request, "facebook", state)
    if reason:
        return _redirect("/login", fb_error=reason)

    try:
        grant = await providers.facebook.exchange_code(code)
        profile = await providers.facebook.get_profile(grant.access_token)
    except ProviderError as e:
        logger.error(f"Facebook OAuth failed: {e}")
        return _redirect("/login", fb_error="auth_failed")

    try:
        customer = token_service.link_facebook_identity(db, profile)
    except STORE_ERRORS as e:
        logger.error(f"Failed to store Facebook customer fb_{profile.id}: {e}")
        return _redirect("/login", fb_error="token_save_failed")

    user_info = {
        "email": customer.email,
        "name": customer.name,
        "role": "facebook_user",
        "customerId": customer.id,
        "authType": "facebook",
    }
    try:
        sess.establish_session(request, user_info, customer_id=customer.id)
    except SessionError as e:
        logger.error(f"Session save error: {e}")
        return _redirect("/login", error="session_failed")

    return _redirect("/dashboard")


@router.post("/auth/facebook/disconnect")
async def facebook_disconnect(
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    if not isinstance(ctx, ProviderSession) or ctx.provider != "facebook":
        return JSONResponse(status_code=401, content={"error": "Not authenticated with Facebook"})

    logger.info(f"Disconnecting Facebook for user: {ctx.email}")
    token_service.disconnect_facebook(db, ctx.customer_id)
    sess.clear_session(request)

    return {"success": True, "message": "Facebook disconnected successfully"}


# ============== QuickBooks ==============

@router.get("/auth/quickbooks")
async def quickbooks_auth(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
    providers: ProviderClients = Depends(get_providers),
):
    if isinstance(ctx, ProviderSession):
        request.session[sess.CUSTOMER_ID] = ctx.customer_id
        logger.info(f"{ctx.provider} user connecting QuickBooks: {ctx.email}")
    elif isinstance(ctx, BasicSession):
        logger.info(f"Basic auth user connecting QuickBooks: {ctx.email}")
    else:
        return _redirect("/", error="login_required")

    return _start_flow(request, "quickbooks", providers.quickbooks)


@router.get("/auth/quickbooks/standalone")
async def quickbooks_standalone(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
    providers: ProviderClients = Depends(get_providers),
):
    if not isinstance(ctx, Anonymous):
        return _redirect("/auth/quickbooks")

    temp_id = str(uuid.uuid4())
    request.session[sess.TEMP_QB_AUTH_ID] = temp_id
    logger.info(f"Starting standalone QuickBooks auth with temp ID: {temp_id}")

    return _start_flow(request, "quickbooks", providers.quickbooks)


@router.get("/auth/quickbooks/callback")
async def quickbooks_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    realm_id: Optional[str] = Query(None, alias="realmId"),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
    providers: ProviderClients = Depends(get_providers),
):
    if error or not code or not realm_id:
        logger.error(f"QuickBooks OAuth error: {error or 'missing code or realmId'}")
        return _redirect("/auth-result", qb_error="auth_failed")

    reason = _check_state(request, "quickbooks", state)
    if reason:
        return _redirect("/auth-result", qb_error=reason)

    client = providers.quickbooks
    try:
        grant = await client.create_token(code)
    except ProviderError as e:
        logger.error(f"QuickBooks token exchange failed: {e}")
        return _redirect("/auth-result", qb_error="auth_failed")

    logger.info(f"QuickBooks auth successful for company {realm_id}")

    try:
        resolution = resolve_link_target(db, ctx, request.session, company_id=realm_id)
        token_service.link_quickbooks_tokens(
            db,
            resolution.customer_id,
            token_service.quickbooks_token_set(grant, realm_id, client.base_url),
        )
    except ResolutionError:
        logger.warning("No valid session found for QuickBooks callback")
        return _redirect("/auth-result", qb_error="session_lost")
    except STORE_ERRORS as e:
        logger.error(f"QuickBooks callback error: {e}")
        return _redirect("/auth-result", qb_error="token_save_failed")

    if not isinstance(ctx, Anonymous):
        return _redirect("/dashboard", qb_success="1")
    return _redirect("/auth-result", qb_success="1", customer_id=resolution.customer_id)


@router.post("/auth/quickbooks/disconnect")
async def quickbooks_disconnect(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    if isinstance(ctx, Anonymous):
        return JSONResponse(status_code=401, content={"error": "Not authenticated"})

    customer = _session_customer(db, ctx)
    if customer:
        token_service.disconnect_quickbooks(db, customer.id)

    return {"success": True, "message": "QuickBooks disconnected"}


@router.get("/auth/quickbooks/disconnect")
async def quickbooks_provider_disconnect(
    realm_id: Optional[str] = Query(None, alias="realmId"),
    db: Session = Depends(get_db),
):
    customer_id = token_service.disconnect_quickbooks_by_company(db, realm_id) if realm_id else None
    return {
        "success": True,
        "message": "Your QuickBooks integration has been disconnected.",
        "customer_id": customer_id,
    }


# ============== TikTok ==============

@router.get("/auth/tiktok")
async def tiktok_auth(request: Request, providers: ProviderClients = Depends(get_providers)):
    if not providers.tiktok.is_configured:
        return JSONResponse(status_code=500, content={"error": "TikTok not configured"})
    return _start_flow(request, "tiktok", providers.tiktok)


@router.get("/auth/tiktok/callback")
async def tiktok_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
    providers: ProviderClients = Depends(get_providers),
):
    if not code:
        return _redirect("/dashboard", error="tiktok_denied")

    reason = _check_state(request, "tiktok", state)
    if reason:
        return _redirect("/dashboard", tiktok_error=reason)

    try:
        grant = await providers.tiktok.exchange_code(code)
    except ProviderError as e:
        logger.error(f"TikTok token exchange failed: {e}")
        return _redirect("/dashboard", tiktok_error="auth_failed")

    try:
        resolution = resolve_link_target(db, ctx, request.session, allow_standalone=False)
        token_service.link_tiktok_tokens(db, resolution.customer_id, grant)
    except ResolutionError:
        return _redirect("/dashboard", tiktok_error="session_lost")
    except STORE_ERRORS as e:
        logger.error(f"TikTok callback error: {e}")
        return _redirect("/dashboard", tiktok_error="token_save_failed")

    return _redirect("/dashboard", tiktok="connected")
