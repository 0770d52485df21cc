"""FastAPI application for the OpenHeart site.

Binds to 127.0.0.1 unless told otherwise.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from openheart import __version__
from openheart.api.models import HealthModel
from openheart.api.routes import router as api_router
from openheart.config import Settings
from openheart.gates.auth import (
    AnonymousResolver,
    BearerTokenResolver,
    ChainedResolver,
    SessionResolver,
    SessionStoreResolver,
)
from openheart.gates.state import SessionPurger, SessionStore, create_session_store
from openheart.web.middleware import SessionCookieMiddleware, setup_secure_logging
from openheart.web.routes import router as pages_router
from openheart.web.templating import PageRenderer
from openheart.web.tokens import get_access_token

logger = logging.getLogger(__name__)


def build_resolver(
    settings: Settings, token_provider: Callable[[], str] = get_access_token
) -> SessionResolver:
    """Session resolver for the configured login mode."""
    if not settings.login_enabled:
        return AnonymousResolver()
    return ChainedResolver(
        [SessionStoreResolver(), BearerTokenResolver(token_provider)]
    )


def create_app(
    settings: Settings | None = None,
    store: SessionStore | None = None,
    resolver: SessionResolver | None = None,
    token_provider: Callable[[], str] | None = None,
) -> FastAPI:
    """Create the site application.

    Args:
        settings: Application settings (defaults when omitted)
        store: Session store override (built from settings when omitted)
        resolver: Session resolver override for the auth gate
        token_provider: Returns the access token accepted by the login form

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()
    if store is None:
        store = create_session_store(
            settings.session_backend, settings.session_db_path
        )
    token_provider = token_provider or get_access_token
    resolver = resolver or build_resolver(settings, token_provider)
    purger = SessionPurger(
        store,
        max_idle=timedelta(seconds=settings.session_idle_ttl_seconds),
        interval_seconds=settings.session_purge_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_secure_logging()
        logger.info(
            f"{settings.site_name} started (sessions={settings.session_backend}, "
            f"resolver={resolver.name})"
        )
        await purger.start()
        yield
        await purger.stop()
        logger.info(f"{settings.site_name} stopped")

    app = FastAPI(
        title=settings.site_name,
        description=settings.tagline,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_store = store
    app.state.session_purger = purger
    app.state.resolver = resolver
    app.state.token_provider = token_provider
    app.state.renderer = PageRenderer(settings.site_name, settings.tagline)

    app.add_middleware(
        SessionCookieMiddleware, store=store, cookie_name=settings.session_cookie
    )

    app.include_router(pages_router)
    app.include_router(api_router)

    @app.get("/health", response_model=HealthModel, tags=["api"])
    async def health() -> HealthModel:
        """Liveness check."""
        return HealthModel(
            status="ok",
            version=__version__,
            session_backend=settings.session_backend,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """JSON errors for the API, HTML pages for everything else."""
        headers = getattr(exc, "headers", None)
        if request.url.path.startswith("/api/"):
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail},
                headers=headers,
            )
        if exc.status_code == 404:
            return app.state.renderer.render("not_found.html", 404)
        response = app.state.renderer.render(
            "error.html",
            exc.status_code,
            error_status=exc.status_code,
            error_message=exc.detail,
        )
        if headers:
            response.headers.update(headers)
        return response

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 47300,
    settings: Settings | None = None,
    log_level: str = "info",
) -> None:
    """Run the site with uvicorn."""
    import uvicorn

    settings = settings or Settings()
    if host not in ("127.0.0.1", "localhost"):
        logger.warning(f"Binding to non-loopback host {host}")

    site_app = create_app(settings)
    uvicorn.run(site_app, host=host, port=port, log_level=log_level)
