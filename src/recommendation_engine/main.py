"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from recommendation_engine import __version__
from recommendation_engine.api.v1.router import api_router
from recommendation_engine.config import get_settings
from recommendation_engine.infrastructure.database.connection import close_db
from recommendation_engine.infrastructure.redis import close_redis
from recommendation_engine.middleware.timing import TimingMiddleware
from shared.exceptions import RecommendationError, UpstreamError
from shared.metrics import InMemoryMetricsSink, MetricsSink

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Storefront Recommender Service",
        app_env=settings.app_env,
        debug=settings.debug,
    )

    yield

    await close_redis()
    await close_db()
    logger.info("Shutting down Storefront Recommender Service")


async def recommendation_error_handler(request: Request, exc: RecommendationError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
        status=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    return await recommendation_error_handler(
        request, UpstreamError("Recommendation store unavailable", details={"error": str(exc)})
    )


def create_app(metrics: MetricsSink | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    metrics = metrics or InMemoryMetricsSink()

    app = FastAPI(
        title="Storefront Recommender API",
        description="Popular, trending, personalized, similar and mixed product recommendations",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.metrics = metrics

    app.add_middleware(TimingMiddleware, sink=metrics)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RecommendationError, recommendation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "recommendation_engine.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
