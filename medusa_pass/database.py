"""
Database engine and session factory. SQLite by default; any SQLAlchemy URL works.
Nothing here is module-level state: the application context owns the engine.
"""
import logging

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medusa_pass.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """
    SQLite in-memory needs StaticPool so all connections share the same DB (tests).
    File-based SQLite needs check_same_thread=False because FastAPI runs sync
    handlers in a thread pool.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create the tokens table and its unique index if they do not exist yet."""
    Base.metadata.create_all(bind=engine)
    logger.debug("Schema ready on %s", engine.url.render_as_string(hide_password=True))
