"""
HTTP handlers: GET /ping, GET /token (code exchange), POST /refresh.
Each is a linear sequence: validate input, call EVE SSO, read/write the token store.
"""
import logging
import xml.etree.ElementTree as ET
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from medusa_pass.context import AppContext, get_context
from medusa_pass.errors import (
    BadRequestError,
    ClientMismatchError,
    DuplicateTokenError,
    TokenNotFoundError,
)

logger = logging.getLogger(__name__)
router = APIRouter()

FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
XML_TYPES = ("application/xml", "text/xml")

Context = Annotated[AppContext, Depends(get_context)]


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    token: str = Field(min_length=1)
    client_id: str = Field(alias="client_ID", min_length=1)


def _xml_fields(raw: bytes) -> dict[str, str]:
    """<refresh><token>..</token><client_ID>..</client_ID></refresh>; root tag is not checked."""
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise BadRequestError(f"Malformed XML body: {e}") from None
    # Namespaced children come back as "{uri}tag"
    return {child.tag.rpartition("}")[2]: (child.text or "") for child in root}


async def _form_fields(request: Request, content_type: str) -> dict[str, str]:
    """Query string values overlaid with form body values, as gin's form binding does."""
    fields = dict(request.query_params)
    if content_type in FORM_TYPES:
        form = await request.form()
        fields.update({k: v for k, v in form.items() if isinstance(v, str)})
    return fields


async def refresh_body(request: Request) -> RefreshRequest:
    """
    Bind the /refresh body from JSON or XML according to Content-Type; anything else
    (no Content-Type, form encodings, unknown types) binds from form + query string.
    Unparseable bodies and missing fields are rejected; there is no fallback to empty values.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == "application/json" or content_type.endswith("+json"):
        try:
            fields = await request.json()
        except ValueError:
            raise BadRequestError("Malformed JSON body") from None
        if not isinstance(fields, dict):
            raise BadRequestError("JSON body must be an object")
    elif content_type in XML_TYPES or content_type.endswith("+xml"):
        fields = _xml_fields(await request.body())
    else:
        fields = await _form_fields(request, content_type)

    try:
        return RefreshRequest.model_validate(fields)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from None


@router.get("/ping")
def ping():
    """Liveness check."""
    return {"message": "pong"}


@router.get("/token")
def token(ctx: Context, code: str | None = Query(None)):
    """
    Exchange an authorization code for tokens, resolve the character, store the pair.
    """
    if code is None or not code.strip():
        raise BadRequestError("code query parameter is required")

    grant = ctx.sso.exchange_code(code.strip())
    identity = ctx.sso.verify(grant.access_token)
    ctx.store.create(
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        character_id=identity.character_id,
        character_name=identity.character_name,
    )
    logger.info(
        "Code exchanged for character_id=%s name=%s",
        identity.character_id,
        identity.character_name,
    )
    return {
        "token": grant.access_token,
        "characterName": identity.character_name,
        "characterID": identity.character_id,
    }


@router.post("/refresh")
def refresh(ctx: Context, body: Annotated[RefreshRequest, Depends(refresh_body)]):
    """
    Swap a previously issued access token for a new one using the stored refresh token.
    The caller must present this proxy's client id.
    """
    if body.client_id != ctx.settings.client_id:
        raise ClientMismatchError()

    stored = ctx.store.find_by_access_token(body.token)
    if stored is None:
        raise TokenNotFoundError()

    grant = ctx.sso.refresh(stored.refresh_token)
    try:
        ctx.store.update_access_token(stored.id, grant.access_token)
    except DuplicateTokenError:
        # SSO already refreshed; the stored row keeps its old access token
        logger.warning(
            "Refreshed access token for character_id=%s (token id=%s) is already stored on another row",
            stored.character_id,
            stored.id,
        )
        raise
    logger.info("Access token refreshed for character_id=%s", stored.character_id)
    return {"token": grant.access_token}
