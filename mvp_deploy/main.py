"""FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mvp_deploy import __version__
from mvp_deploy.api.middleware import RequestLoggingMiddleware
from mvp_deploy.api.v1.router import router as v1_router
from mvp_deploy.config import settings
from mvp_deploy.core.exceptions import (
    DeploymentNotFoundError,
    MvpDeployError,
    ValidationError,
)
from mvp_deploy.core.session import get_session_manager
from mvp_deploy.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

SESSION_SWEEP_SECONDS = 3600.0


async def _sweep_sessions() -> None:
    sessions = get_session_manager()
    while True:
        await asyncio.sleep(SESSION_SWEEP_SECONDS)
        removed = await sessions.cleanup_expired()
        if removed:
            logger.info("sessions.expired", removed=removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and run the session sweeper for the app's lifetime."""
    configure_logging()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        project_id=settings.gcp_project_id,
        region=settings.gcp_region,
        real_deployments=settings.gcp_deploy_real,
    )
    sweeper = asyncio.create_task(_sweep_sessions())

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    logger.info("application.shutdown")


def _error_response(
    status_code: int, code: str, message: str, **extra: Any
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


def _error_status(exc: MvpDeployError) -> int:
    if isinstance(exc, DeploymentNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="MVP Deploy API",
        description="Takes finished MVPs live on Cloud Run and reports progress along the way",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(MvpDeployError)
    async def mvp_deploy_error_handler(
        request: Request, exc: MvpDeployError
    ) -> JSONResponse:
        code = _error_status(exc)
        if code >= 500:
            logger.error("request.failed", path=request.url.path, error=exc.message)
        return _error_response(
            code, type(exc).__name__.upper(), exc.message, details=exc.details
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )
        if settings.is_development:
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "INTERNAL_ERROR",
                str(exc),
                type=type(exc).__name__,
            )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An unexpected error occurred",
        )

    app.include_router(v1_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mvp_deploy.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
