import pytest

from app.core import session as sess
from app.core.errors import ResolutionError
from app.services import customer_service
from app.services.identity_service import (
    Anonymous, BasicSession, ProviderSession,
    auth_context_from_session, resolve_link_target,
)

from conftest import seed_customer


def google_session(customer_id="cust-1"):
    return {
        sess.AUTHENTICATED: True,
        sess.USER_INFO: {"email": "a@x.com", "name": "Alice", "customerId": customer_id, "authType": "google"},
    }


def basic_session(email="basic@example.com"):
    return {
        sess.AUTHENTICATED: True,
        sess.USER_INFO: {"email": email, "name": "Basic Bob", "role": "user", "authType": "basic"},
    }


# ========== Auth context ==========

def test_empty_session_is_anonymous():
    assert auth_context_from_session({}) == Anonymous()


def test_unauthenticated_user_info_is_anonymous():
    session = google_session()
    session[sess.AUTHENTICATED] = False
    assert isinstance(auth_context_from_session(session), Anonymous)


def test_google_session_context():
    ctx = auth_context_from_session(google_session("cust-9"))
    assert ctx == ProviderSession(customer_id="cust-9", email="a@x.com", name="Alice", provider="google")


def test_facebook_session_is_provider_session():
    session = {
        sess.AUTHENTICATED: True,
        sess.USER_INFO: {"email": "f@b.com", "customerId": "fb_1", "authType": "facebook"},
    }
    ctx = auth_context_from_session(session)
    assert isinstance(ctx, ProviderSession)
    assert ctx.provider == "facebook"


def test_basic_session_context():
    ctx = auth_context_from_session(basic_session())
    assert ctx == BasicSession(email="basic@example.com", name="Basic Bob", role="user")


# ========== Resolution rules ==========

def test_rule_1_provider_session(db):
    session = google_session("cust-1")
    resolution = resolve_link_target(db, auth_context_from_session(session), session, company_id="123")
    assert (resolution.customer_id, resolution.rule, resolution.is_new) == ("cust-1", 1, False)


def test_rule_2_basic_user_existing_customer(db):
    seed_customer(db, customer_id="cust-b", email="basic@example.com")
    session = basic_session()

    resolution = resolve_link_target(db, auth_context_from_session(session), session)

    assert (resolution.customer_id, resolution.rule, resolution.is_new) == ("cust-b", 2, False)


def test_rule_2_basic_user_creates_customer(db):
    session = basic_session()

    resolution = resolve_link_target(db, auth_context_from_session(session), session)
    customer = customer_service.get_customer(db, resolution.customer_id)

    assert resolution.rule == 2 and resolution.is_new
    assert customer.email == "basic@example.com"
    assert customer.name == "Basic Bob"
    assert customer.google_access_token is None


def test_rule_3_session_customer_id(db):
    session = {sess.CUSTOMER_ID: "cust-7"}
    resolution = resolve_link_target(db, Anonymous(), session)
    assert (resolution.customer_id, resolution.rule) == ("cust-7", 3)


def test_rule_4_temp_id_creates_placeholder_customer(db):
    session = {sess.TEMP_QB_AUTH_ID: "temp-1"}

    resolution = resolve_link_target(db, Anonymous(), session, company_id="123")
    customer = customer_service.get_customer(db, resolution.customer_id)

    assert resolution.rule == 4 and resolution.is_new
    assert customer.email == "qb-user-123@temp.local"
    assert customer.name == "QuickBooks User 123"
    assert sess.TEMP_QB_AUTH_ID not in session


def test_rule_4_reuses_placeholder_customer_for_same_company(db):
    first = resolve_link_target(db, Anonymous(), {sess.TEMP_QB_AUTH_ID: "temp-1"}, company_id="123")
    session = {sess.TEMP_QB_AUTH_ID: "temp-2"}

    second = resolve_link_target(db, Anonymous(), session, company_id="123")

    assert second.customer_id == first.customer_id
    assert second.rule == 4 and not second.is_new
    assert customer_service.count_customers(db) == 1
    assert sess.TEMP_QB_AUTH_ID not in session


def test_rule_4_skipped_when_standalone_not_allowed(db):
    with pytest.raises(ResolutionError):
        resolve_link_target(db, Anonymous(), {sess.TEMP_QB_AUTH_ID: "temp-1"}, allow_standalone=False)


def test_rule_5_nothing_to_resolve(db):
    with pytest.raises(ResolutionError):
        resolve_link_target(db, Anonymous(), {}, company_id="123")


# ========== Precedence pairs ==========

def test_provider_session_beats_basic_style_and_session_ids(db):
    session = google_session("cust-1")
    session[sess.CUSTOMER_ID] = "cust-other"
    session[sess.TEMP_QB_AUTH_ID] = "temp-1"

    resolution = resolve_link_target(db, auth_context_from_session(session), session, company_id="123")

    assert resolution.customer_id == "cust-1"
    assert resolution.rule == 1
    assert customer_service.count_customers(db) == 0


def test_basic_session_beats_session_customer_id_and_temp_id(db):
    seed_customer(db, customer_id="cust-b", email="basic@example.com")
    session = basic_session()
    session[sess.CUSTOMER_ID] = "cust-other"
    session[sess.TEMP_QB_AUTH_ID] = "temp-1"

    resolution = resolve_link_target(db, auth_context_from_session(session), session, company_id="123")

    assert (resolution.customer_id, resolution.rule) == ("cust-b", 2)


def test_session_customer_id_beats_temp_id(db):
    session = {sess.CUSTOMER_ID: "cust-7", sess.TEMP_QB_AUTH_ID: "temp-1"}

    resolution = resolve_link_target(db, Anonymous(), session, company_id="123")

    assert (resolution.customer_id, resolution.rule) == ("cust-7", 3)
    assert customer_service.count_customers(db) == 0
