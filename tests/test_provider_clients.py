import asyncio

import httpx
import pytest

from app.integrations import (
    FacebookOAuthClient, GoogleOAuthClient, ProviderError, QuickBooksOAuthClient, TikTokOAuthClient,
)


def _transport(handler):
    calls = []

    def wrapped(request):
        calls.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped), calls


def _quickbooks(handler, environment="sandbox"):
    transport, calls = _transport(handler)
    client = QuickBooksOAuthClient("id", "secret", "http://cb", environment=environment, transport=transport)
    return client, calls


def _google(handler):
    transport, calls = _transport(handler)
    return GoogleOAuthClient("id", "secret", "http://cb", transport=transport), calls


# ========== QuickBooks validation ==========

@pytest.mark.parametrize("token,company", [(None, "123"), ("tok", None), ("tok", "")])
def test_quickbooks_missing_argument_is_invalid_without_network(token, company):
    client, calls = _quickbooks(lambda request: httpx.Response(200))

    result = asyncio.run(client.validate_token(token, company))

    assert result.valid is False
    assert result.error == "Missing token or company ID"
    assert calls == []


def test_quickbooks_probe_success():
    client, calls = _quickbooks(lambda request: httpx.Response(200, json={"CompanyInfo": {}}))

    result = asyncio.run(client.validate_token("tok", "123"))

    assert result.valid is True
    assert str(calls[0].url) == "https://sandbox-quickbooks.api.intuit.com/v3/company/123/companyinfo/123"
    assert calls[0].headers["Authorization"] == "Bearer tok"


def test_quickbooks_unreachable_falls_back_to_valid():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _quickbooks(unreachable)

    assert asyncio.run(client.validate_token("tok", "123")).valid is True


def test_quickbooks_non_success_status_falls_back_to_valid():
    client, _ = _quickbooks(lambda request: httpx.Response(401, json={"fault": "auth"}))

    assert asyncio.run(client.validate_token("tok", "123")).valid is True


def test_quickbooks_base_url_follows_environment():
    assert _quickbooks(None, environment="production")[0].base_url == QuickBooksOAuthClient.PRODUCTION_BASE_URL
    assert _quickbooks(None, environment="sandbox")[0].base_url == QuickBooksOAuthClient.SANDBOX_BASE_URL


def test_quickbooks_create_token_uses_basic_auth():
    client, calls = _quickbooks(lambda request: httpx.Response(
        200, json={"access_token": "a", "refresh_token": "r", "expires_in": 3600}
    ))

    grant = asyncio.run(client.create_token("code-1"))

    assert grant.access_token == "a"
    assert calls[0].headers["Authorization"].startswith("Basic ")
    assert b"code=code-1" in calls[0].content


def test_quickbooks_refresh_failure_is_a_result():
    client, _ = _quickbooks(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

    result = asyncio.run(client.refresh_using_token("r"))

    assert result.success is False
    assert result.error == "invalid_grant"


# ========== Google ==========

def test_google_validate_success_reads_expiry_and_scopes():
    client, _ = _google(lambda request: httpx.Response(
        200, json={"expires_in": "3500", "scope": "email profile"}
    ))

    result = asyncio.run(client.validate_token("tok"))

    assert result.valid is True
    assert result.expires_in == 3500
    assert result.scopes == ["email", "profile"]


def test_google_validate_rejected_token():
    client, _ = _google(lambda request: httpx.Response(400, json={"error": "invalid_token"}))

    assert asyncio.run(client.validate_token("tok")).valid is False


def test_google_validate_network_error_is_invalid_with_detail():
    def unreachable(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client, _ = _google(unreachable)
    result = asyncio.run(client.validate_token("tok"))

    assert result.valid is False
    assert result.error


def test_google_refresh_without_refresh_token_in_response():
    client, calls = _google(lambda request: httpx.Response(
        200, json={"access_token": "new", "expires_in": 3599}
    ))

    result = asyncio.run(client.refresh_access_token("r-1"))

    assert result.success is True
    assert result.access_token == "new"
    assert result.refresh_token is None
    assert result.expires_in == 3599
    assert b"grant_type=refresh_token" in calls[0].content


def test_google_refresh_error_carries_provider_detail():
    client, _ = _google(lambda request: httpx.Response(
        400, json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."}
    ))

    result = asyncio.run(client.refresh_access_token("r-1"))

    assert result.success is False
    assert result.error == "Token has been expired or revoked."


def test_google_auth_url_requests_offline_access():
    client, _ = _google(None)
    url = client.get_auth_url("st")
    assert "access_type=offline" in url
    assert "prompt=consent" in url
    assert "state=st" in url


def test_google_exchange_failure_raises_provider_error():
    client, _ = _google(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

    with pytest.raises(ProviderError):
        asyncio.run(client.exchange_code("bad"))


# ========== Facebook / TikTok ==========

def test_facebook_profile_without_email_gets_fallback():
    transport, _ = _transport(lambda request: httpx.Response(
        200, json={"id": "77", "first_name": "Fay", "last_name": "Book"}
    ))
    client = FacebookOAuthClient("id", "secret", "http://cb", transport=transport)

    profile = asyncio.run(client.get_profile("tok"))

    assert profile.email == "fb_77@facebook.com"
    assert profile.name == "Fay Book"


def test_tiktok_error_body_raises():
    transport, _ = _transport(lambda request: httpx.Response(
        200, json={"error": "invalid_request", "error_description": "Code expired"}
    ))
    client = TikTokOAuthClient("key", "secret", "http://cb", transport=transport)

    with pytest.raises(ProviderError) as exc:
        asyncio.run(client.exchange_code("code"))
    assert exc.value.detail == "Code expired"


def test_tiktok_not_configured_without_credentials():
    assert TikTokOAuthClient("", "", "http://cb").is_configured is False


# ========== Non-JSON success bodies ==========

def _html(request):
    return httpx.Response(200, text="<html>Sign in to the network</html>")


def test_google_validate_html_body_is_invalid():
    client, _ = _google(_html)

    result = asyncio.run(client.validate_token("tok"))

    assert result.valid is False
    assert "non-JSON" in result.error


def test_refreshers_report_html_body_as_failure():
    google, _ = _google(_html)
    quickbooks, _ = _quickbooks(_html)
    transport, _ = _transport(_html)
    tiktok = TikTokOAuthClient("key", "secret", "http://cb", transport=transport)

    for result in (
        asyncio.run(google.refresh_access_token("r")),
        asyncio.run(quickbooks.refresh_using_token("r")),
        asyncio.run(tiktok.refresh_access_token("r")),
    ):
        assert result.success is False
        assert "non-JSON" in result.error


@pytest.mark.parametrize("client_class", [
    GoogleOAuthClient, FacebookOAuthClient, QuickBooksOAuthClient, TikTokOAuthClient,
])
def test_exchange_html_body_raises_provider_error(client_class):
    transport, _ = _transport(_html)
    client = client_class("id", "secret", "http://cb", transport=transport)

    with pytest.raises(ProviderError):
        asyncio.run(client.exchange_code("code"))
