"""
Persistence for EVE SSO tokens: create on code exchange, look up by access token,
overwrite the access token on refresh. One short-lived session per operation.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from medusa_pass.errors import DuplicateTokenError, TokenNotFoundError
from medusa_pass.models import Token

logger = logging.getLogger(__name__)


class TokenStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def create(
        self,
        access_token: str,
        refresh_token: str,
        character_id: int,
        character_name: str,
    ) -> Token:
        """Insert a new row. Raises DuplicateTokenError if the access token is already stored."""
        token = Token(
            access_token=access_token,
            refresh_token=refresh_token,
            character_id=character_id,
            character_name=character_name,
        )
        with self._session_factory() as db:
            db.add(token)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateTokenError() from None
            db.refresh(token)
        logger.debug("Stored token id=%s for character_id=%s", token.id, character_id)
        return token

    def find_by_access_token(self, access_token: str) -> Token | None:
        """Live (not soft-deleted) row holding this access token, or None."""
        with self._session_factory() as db:
            return (
                db.query(Token)
                .filter(Token.access_token == access_token, Token.deleted_at.is_(None))
                .first()
            )

    def update_access_token(self, token_id: int, new_access_token: str) -> Token:
        """Overwrite the access token of one row; refresh token and character are untouched."""
        with self._session_factory() as db:
            token = db.get(Token, token_id)
            if token is None or token.deleted_at is not None:
                raise TokenNotFoundError()
            token.access_token = new_access_token
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateTokenError() from None
            db.refresh(token)
        return token

    def count(self) -> int:
        """Rows in the table, soft-deleted included. Test and diagnostics helper."""
        with self._session_factory() as db:
            return db.query(Token).count()
