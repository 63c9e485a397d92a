"""Tests for the EVE SSO client: headers, response parsing, error mapping."""
import httpx
import pytest

from conftest import FakeSSO, token_response, verify_response
from medusa_pass.errors import UpstreamError, UpstreamTimeoutError
from medusa_pass.eve_sso import CharacterIdentity, EveSSOClient, TokenGrant, basic_credentials


@pytest.fixture
def fake():
    return FakeSSO()


@pytest.fixture
def sso_client(settings, fake):
    c = EveSSOClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(fake)))
    yield c
    c.close()


def test_basic_credentials():
    assert basic_credentials("client", "secret") == "Basic Y2xpZW50OnNlY3JldA=="


def test_exchange_code_returns_grant(sso_client, fake):
    fake.queue("/oauth/token", token_response("at-1", "rt-1"))
    assert sso_client.exchange_code("abc") == TokenGrant(access_token="at-1", refresh_token="rt-1")


def test_exchange_code_without_refresh_token(sso_client, fake):
    fake.queue("/oauth/token", token_response("at-1", refresh_token=None))
    with pytest.raises(UpstreamError, match="refresh_token"):
        sso_client.exchange_code("abc")


def test_token_response_without_access_token(sso_client, fake):
    fake.queue("/oauth/token", httpx.Response(200, json={"token_type": "Bearer"}))
    with pytest.raises(UpstreamError, match="access_token"):
        sso_client.refresh("rt-1")


def test_refresh_allows_missing_refresh_token(sso_client, fake):
    fake.queue("/oauth/token", token_response("at-2", refresh_token=None))
    grant = sso_client.refresh("rt-1")
    assert grant.access_token == "at-2"
    assert grant.refresh_token is None


def test_verify_returns_identity(sso_client, fake):
    fake.queue("/oauth/verify", verify_response(2112625428, "CCP Bartender"))
    identity = sso_client.verify("at-1")
    assert identity == CharacterIdentity(character_id=2112625428, character_name="CCP Bartender")
    assert fake.requests[0].headers["authorization"] == "Bearer at-1"


def test_verify_missing_character(sso_client, fake):
    fake.queue("/oauth/verify", httpx.Response(200, json={"CharacterName": "Nobody"}))
    with pytest.raises(UpstreamError, match="CharacterID"):
        sso_client.verify("at-1")


def test_error_description_is_reported(sso_client, fake):
    fake.queue(
        "/oauth/token",
        httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid refresh token"}),
    )
    with pytest.raises(UpstreamError) as excinfo:
        sso_client.refresh("rt-1")
    assert excinfo.value.upstream_status == 400
    assert excinfo.value.status_code == 502
    assert "Invalid refresh token" in excinfo.value.detail


def test_non_json_success_body(sso_client, fake):
    fake.queue("/oauth/token", httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(UpstreamError, match="non-JSON"):
        sso_client.exchange_code("abc")


def test_timeout_maps_to_504(sso_client, fake):
    fake.queue("/oauth/verify", httpx.ConnectTimeout("connect timed out"))
    with pytest.raises(UpstreamTimeoutError) as excinfo:
        sso_client.verify("at-1")
    assert excinfo.value.status_code == 504


def test_user_agent_and_accept_headers(sso_client, fake, settings):
    fake.queue("/oauth/token", token_response())
    sso_client.refresh("rt-1")
    request = fake.requests[0]
    assert request.headers["user-agent"] == settings.user_agent
    assert request.headers["accept"] == "application/json"
    assert request.url == httpx.URL("https://login.eveonline.com/oauth/token")
