"""
medusa-pass: OAuth2 token-exchange proxy for EVE Online SSO.
GET /ping, GET /token?code=..., POST /refresh. Listens on ADDR (default :8080).
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from medusa_pass.config import (
    CORS_ALLOW_HEADERS,
    CORS_EXPOSE_HEADERS,
    CORS_MAX_AGE,
    ConfigError,
    Settings,
    load_settings,
)
from medusa_pass.context import AppContext, build_context
from medusa_pass.errors import install_error_handlers
from medusa_pass.routes import router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, *, context: AppContext | None = None) -> FastAPI:
    """
    Build the app. Settings are loaded from medusa-pass.ini / environment when not given;
    the database schema is created before the app is returned.
    """
    if context is None:
        context = build_context(settings or load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        context.close()
        logger.info("medusa-pass stopped")

    app = FastAPI(title="medusa-pass", version="0.1.0", lifespan=lifespan)
    app.state.context = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
        max_age=CORS_MAX_AGE,
    )
    install_error_handlers(app)
    app.include_router(router, tags=["tokens"])
    return app


def run() -> None:
    """Console entry point: load config (fatal on error), then serve until terminated."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigError as e:
        logger.critical("Configuration error: %s", e)
        sys.exit(1)
    except SQLAlchemyError as e:
        logger.critical("Cannot open database: %s", e)
        sys.exit(1)
    logging.getLogger().setLevel(settings.log_level)

    import uvicorn

    host, port = settings.listen_address()
    logger.info("medusa-pass listening on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
