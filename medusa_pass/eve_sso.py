"""
Outbound calls to EVE Online SSO: authorization-code exchange, refresh, and verify.
Token calls use HTTP Basic auth of client_id:secret (RFC 6749 §2.3.1); verify uses
the fresh access token as Bearer. No retries: failures go straight back to the caller.
"""
import base64
import logging
from dataclasses import dataclass

import httpx

from medusa_pass.config import Settings
from medusa_pass.errors import UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/token"
VERIFY_PATH = "/oauth/verify"


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: str | None


@dataclass(frozen=True)
class CharacterIdentity:
    character_id: int
    character_name: str


def basic_credentials(client_id: str, secret_key: str) -> str:
    """'Basic <base64(client_id:secret)>' value for the Authorization header."""
    raw = f"{client_id}:{secret_key}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _error_detail(r: httpx.Response) -> str:
    """Best-effort error text from an SSO error response (JSON error_description/error, else body)."""
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("error_description") or body.get("error") or body.get("message")
        if detail:
            return str(detail)
    text = (r.text or "").strip()
    return text[:200] if text else f"HTTP {r.status_code}"


class EveSSOClient:
    def __init__(self, settings: Settings, http_client: httpx.Client | None = None):
        self._base_url = settings.sso_base_url.rstrip("/")
        self._basic = basic_credentials(settings.client_id, settings.secret_key)
        self._user_agent = settings.user_agent
        self._http = http_client or httpx.Client(timeout=settings.http_timeout)

    def close(self) -> None:
        self._http.close()

    def _headers(self, authorization: str) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": authorization,
            "User-Agent": self._user_agent,
        }

    def _send(self, method: str, path: str, what: str, **kwargs) -> dict:
        url = self._base_url + path
        try:
            r = self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("EVE SSO %s timed out: %s", what, e)
            raise UpstreamTimeoutError(f"EVE SSO {what} timed out") from e
        except httpx.HTTPError as e:
            logger.warning("EVE SSO %s failed: %s", what, e)
            raise UpstreamError(f"EVE SSO {what} failed: {e}") from e

        if not r.is_success:
            detail = _error_detail(r)
            logger.warning("EVE SSO %s returned %s: %s", what, r.status_code, detail)
            raise UpstreamError(f"EVE SSO {what} returned {r.status_code}: {detail}", r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError(f"EVE SSO {what} returned a non-JSON body", r.status_code) from e
        if not isinstance(data, dict):
            raise UpstreamError(f"EVE SSO {what} returned an unexpected body", r.status_code)
        return data

    def _token_request(self, form: dict[str, str], what: str) -> TokenGrant:
        data = self._send("POST", TOKEN_PATH, what, data=form, headers=self._headers(self._basic))
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise UpstreamError(f"EVE SSO {what} response has no access_token")
        refresh_token = data.get("refresh_token")
        return TokenGrant(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
        )

    def exchange_code(self, code: str) -> TokenGrant:
        """grant_type=authorization_code: one-time code -> access + refresh token."""
        grant = self._token_request({"grant_type": "authorization_code", "code": code}, "code exchange")
        if grant.refresh_token is None:
            raise UpstreamError("EVE SSO code exchange response has no refresh_token")
        return grant

    def refresh(self, refresh_token: str) -> TokenGrant:
        """grant_type=refresh_token: stored refresh token -> new access token."""
        return self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}, "token refresh"
        )

    def verify(self, access_token: str) -> CharacterIdentity:
        """Resolve the character behind an access token (GET /oauth/verify)."""
        data = self._send("GET", VERIFY_PATH, "verify", headers=self._headers(f"Bearer {access_token}"))
        character_id = data.get("CharacterID")
        character_name = data.get("CharacterName")
        # bool is an int subclass; reject it explicitly
        if isinstance(character_id, bool) or not isinstance(character_id, (int, float)):
            raise UpstreamError("EVE SSO verify response has no CharacterID")
        if not isinstance(character_name, str) or not character_name:
            raise UpstreamError("EVE SSO verify response has no CharacterName")
        return CharacterIdentity(character_id=int(character_id), character_name=character_name)
