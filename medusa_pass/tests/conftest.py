"""
Pytest fixtures for medusa-pass. In-memory SQLite per test; EVE SSO is replaced by
an httpx.MockTransport so no request leaves the process.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from medusa_pass.config import Settings
from medusa_pass.context import build_context
from medusa_pass.main import create_app

CLIENT_ID = "test-client"
SECRET_KEY = "test-secret"


class FakeSSO:
    """Queued responses per path; records every request it sees."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.queued: dict[str, list] = {"/oauth/token": [], "/oauth/verify": []}

    def queue(self, path: str, *items) -> None:
        self.queued[path].extend(items)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        pending = self.queued.get(request.url.path)
        if not pending:
            return httpx.Response(500, json={"error": f"unexpected call to {request.url.path}"})
        item = pending.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def token_response(access_token="at-1", refresh_token="rt-1", **extra) -> httpx.Response:
    body = {"access_token": access_token, "token_type": "Bearer", "expires_in": 1199}
    if refresh_token is not None:
        body["refresh_token"] = refresh_token
    body.update(extra)
    return httpx.Response(200, json=body)


def verify_response(character_id=90000001, character_name="Medusa Pilot") -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "CharacterID": character_id,
            "CharacterName": character_name,
            "ExpiresOn": "2026-10-19T12:00:00",
            "Scopes": "",
            "TokenType": "Character",
            "CharacterOwnerHash": "owner-hash",
        },
    )


@pytest.fixture
def settings():
    return Settings(
        client_id=CLIENT_ID,
        secret_key=SECRET_KEY,
        user_agent="medusa-pass-tests/1.0",
        database_url="sqlite:///:memory:",
        sso_base_url="https://login.eveonline.com",
    )


@pytest.fixture
def sso():
    return FakeSSO()


@pytest.fixture
def context(settings, sso):
    ctx = build_context(settings, http_client=httpx.Client(transport=httpx.MockTransport(sso)))
    yield ctx
    ctx.close()


@pytest.fixture
def client(context):
    with TestClient(create_app(context=context)) as c:
        yield c
