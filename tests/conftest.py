import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BASE_URL", "http://portal.test")
os.environ.setdefault("ADMIN_EMAILS", "admin@example.com")

from datetime import timedelta

import bcrypt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import get_db, settings
from app.core.clock import utcnow
from app.core.migrations import run_migrations
from app.integrations import (
    TokenGrant, TokenRefresh, TokenValidation, FacebookProfile, ProviderError,
    GoogleOAuthClient, QuickBooksOAuthClient,
    GoogleTokenSet, QuickBooksTokenSet,
)
from app.api.deps import get_providers
from app.services import customer_service


# ========== Fake provider clients ==========

class FakeGoogle:
    REQUIRED_SCOPES = GoogleOAuthClient.REQUIRED_SCOPES

    def __init__(self):
        self.valid = True
        self.validate_calls = []
        self.profile = {"email": "a@x.com", "name": "Alice", "picture": None}
        self.grant = TokenGrant(access_token="g-access-1", refresh_token="g-refresh-1", scope="email profile")
        self.exchange_error = None
        self.refresh_result = TokenRefresh(success=True, access_token="g-access-new", expires_in=3599)

    def generate_state(self):
        return "google-state"

    def get_auth_url(self, state):
        return f"https://accounts.google.test/auth?state={state}"

    async def exchange_code(self, code):
        if self.exchange_error:
            raise ProviderError("google", self.exchange_error)
        return self.grant

    async def get_user_info(self, access_token):
        return dict(self.profile)

    async def validate_token(self, access_token):
        self.validate_calls.append(access_token)
        if not self.valid:
            return TokenValidation(valid=False, status=400)
        return TokenValidation(valid=True, expires_in=3000, scopes=["email", "profile"], status=200)

    async def refresh_access_token(self, refresh_token):
        return self.refresh_result


class FakeQuickBooks:
    base_url = QuickBooksOAuthClient.SANDBOX_BASE_URL

    def __init__(self):
        self.grant = TokenGrant(access_token="qb-access-1", refresh_token="qb-refresh-1")
        self.exchange_error = None
        self.refresh_result = TokenRefresh(success=True, access_token="qb-access-new", expires_in=3600)

    def generate_state(self):
        return "qb-state"

    def get_auth_url(self, state):
        return f"https://appcenter.intuit.test/connect/oauth2?state={state}"

    async def create_token(self, code):
        if self.exchange_error:
            raise ProviderError("quickbooks", self.exchange_error)
        return self.grant

    async def validate_token(self, access_token, company_id):
        if not access_token or not company_id:
            return TokenValidation(valid=False, error="Missing token or company ID")
        return TokenValidation(valid=True, status=200)

    async def refresh_using_token(self, refresh_token):
        return self.refresh_result


class FakeFacebook:
    def __init__(self):
        self.profile = FacebookProfile(id="999", email="fb@example.com", name="Fay Book")

    def generate_state(self):
        return "fb-state"

    def get_auth_url(self, state):
        return f"https://www.facebook.test/dialog/oauth?state={state}"

    async def exchange_code(self, code):
        return TokenGrant(access_token="fb-access")

    async def get_profile(self, access_token):
        return self.profile


class FakeTikTok:
    is_configured = True

    def generate_state(self):
        return "tt-state"

    def get_auth_url(self, state):
        return f"https://www.tiktok.test/v2/auth/authorize/?state={state}"

    async def exchange_code(self, code):
        return TokenGrant(access_token="tt-access", refresh_token="tt-refresh", expires_in=86400,
                          extra={"open_id": "open-123"})


class FakeProviders:
    def __init__(self):
        self.google = FakeGoogle()
        self.quickbooks = FakeQuickBooks()
        self.facebook = FakeFacebook()
        self.tiktok = FakeTikTok()


# ========== Fixtures ==========

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def providers():
    return FakeProviders()


@pytest.fixture
def app(engine, providers):
    from main import create_app

    application = create_app()
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_providers] = lambda: providers
    return application


@pytest.fixture
def client(app):
    # Not used as a context manager: lifespan would migrate the configured database
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def basic_user(monkeypatch):
    password_hash = bcrypt.hashpw(b"s3cret", bcrypt.gensalt()).decode("utf-8")
    users = '{"basic@example.com": {"password_hash": "%s", "name": "Basic Bob", "role": "user"}}' % password_hash
    monkeypatch.setattr(settings, "BASIC_AUTH_USERS", users)
    return {"username": "basic@example.com", "password": "s3cret"}


# ========== Seed helpers ==========

def google_tokens(suffix="1"):
    return GoogleTokenSet(
        access_token=f"g-access-{suffix}",
        refresh_token=f"g-refresh-{suffix}",
        scopes="email profile",
        expires_at=utcnow() + timedelta(hours=1),
    )


def quickbooks_tokens(company_id="123"):
    return QuickBooksTokenSet(
        access_token="qb-access-seed",
        refresh_token="qb-refresh-seed",
        company_id=company_id,
        expires_at=utcnow() + timedelta(hours=1),
        base_url=QuickBooksOAuthClient.SANDBOX_BASE_URL,
    )


def seed_customer(db, customer_id="cust-1", email="a@x.com", google=True, quickbooks=False):
    return customer_service.upsert_customer(
        db,
        customer_id,
        email=email,
        name="Alice",
        google=google_tokens() if google else None,
        quickbooks=quickbooks_tokens() if quickbooks else None,
    )
