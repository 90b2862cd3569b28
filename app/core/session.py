"""
Session helpers over Starlette's signed-cookie session
"""
from typing import Optional
from starlette.requests import Request
import json
import logging

from .errors import SessionError

logger = logging.getLogger(__name__)

# Session keys
AUTHENTICATED = "authenticated"
USER_INFO = "user_info"
CUSTOMER_ID = "customer_id"
TEMP_QB_AUTH_ID = "temp_qb_auth_id"
OAUTH_STATE_PREFIX = "oauth_state_"


def establish_session(request: Request, user_info: dict, customer_id: Optional[str] = None):
    """
    Mark the session authenticated with a normalized user-info bag.
    Raises SessionError if the bag cannot be persisted in the cookie.
    """
    try:
        json.dumps(user_info)
    except (TypeError, ValueError) as e:
        raise SessionError(f"User info is not serializable: {e}") from e

    request.session[AUTHENTICATED] = True
    request.session[USER_INFO] = user_info
    if customer_id:
        request.session[CUSTOMER_ID] = customer_id
    logger.info(f"Session established for {user_info.get('email')} ({user_info.get('authType')})")


def store_oauth_state(request: Request, provider: str, state: str):
    request.session[f"{OAUTH_STATE_PREFIX}{provider}"] = state


def pop_oauth_state(request: Request, provider: str) -> Optional[str]:
    return request.session.pop(f"{OAUTH_STATE_PREFIX}{provider}", None)


def clear_session(request: Request):
    request.session.clear()
