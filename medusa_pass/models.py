"""
SQLAlchemy models. One table: tokens issued by EVE SSO, keyed by access token.
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Token(Base):
    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Unique: the refresh lookup relies on at most one row per access token
    access_token: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False, index=True)
    refresh_token: Mapped[str] = mapped_column(String(2048), nullable=False)
    character_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    character_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)
    # Soft-delete marker; nothing sets it yet, lookups skip rows where it is set
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Token id={self.id} character_id={self.character_id}>"
