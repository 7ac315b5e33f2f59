"""FastAPI application factory.

Main entry point for the TradeBench Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradebench import __version__
from tradebench.api import ApiClient, create_api_client
from tradebench.core.auth_context import AuthContext
from tradebench.errors import TradeBenchError
from tradebench.web.deps import status_for
from tradebench.web.routes import (
    auth_router,
    bookmarks_router,
    health_router,
    progress_router,
    questions_router,
    quiz_sessions_router,
    study_guides_router,
    years_router,
)

logger = structlog.get_logger(__name__)


def _make_lifespan(client: ApiClient | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Open the client and auth context for the app's lifetime."""
        owned = client is None
        app.state.client = client or create_api_client()
        app.state.auth = AuthContext(app.state.client.auth)
        await app.state.auth.start()
        logger.info(
            "api.startup",
            mode=app.state.client.mode,
            auth_status=app.state.auth.status.value,
        )
        try:
            yield
        finally:
            await app.state.auth.close()
            # Injected clients belong to the caller
            if owned:
                await app.state.client.aclose()
            logger.info("api.shutdown")

    return lifespan


async def _tradebench_error_handler(request: Request, exc: TradeBenchError) -> JSONResponse:
    code = status_for(exc)
    logger.info(
        "api.error",
        path=request.url.path,
        status=code,
        error_type=type(exc).__name__,
        error=exc.message,
    )
    return JSONResponse(
        status_code=code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def create_app(client: ApiClient | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        client: ApiClient to serve. Defaults to the configured backend,
            created at startup.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="TradeBench API",
        description="Practice questions, study guides and progress tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_make_lifespan(client),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TradeBenchError, _tradebench_error_handler)

    app.include_router(health_router)
    app.include_router(years_router)
    app.include_router(questions_router)
    app.include_router(study_guides_router)
    app.include_router(progress_router)
    app.include_router(bookmarks_router)
    app.include_router(quiz_sessions_router)
    app.include_router(auth_router)

    return app
