"""
Application context: everything a handler needs, built once before serving and
reached through a FastAPI dependency instead of module globals.
"""
from dataclasses import dataclass

import httpx
from fastapi import Request
from sqlalchemy import Engine

from medusa_pass.config import Settings
from medusa_pass.database import create_db_engine, create_session_factory, init_db
from medusa_pass.eve_sso import EveSSOClient
from medusa_pass.token_store import TokenStore


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    store: TokenStore
    sso: EveSSOClient

    def close(self) -> None:
        self.sso.close()
        self.engine.dispose()


def build_context(settings: Settings, http_client: httpx.Client | None = None) -> AppContext:
    """Open the database (creating the schema) and the SSO client."""
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    return AppContext(
        settings=settings,
        engine=engine,
        store=TokenStore(create_session_factory(engine)),
        sso=EveSSOClient(settings, http_client=http_client),
    )


def get_context(request: Request) -> AppContext:
    """Dependency: the context attached to the running app."""
    return request.app.state.context
