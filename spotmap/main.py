# Application factory and lifecycle for the spot directory service.

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from spotmap.api.routes import router as api_router
from spotmap.core.config import Settings, settings as default_settings
from spotmap.core.middleware import CorsGateMiddleware
from spotmap.logging import configure_logging
from spotmap.middleware.logging import LoggingMiddleware
from spotmap.models.dto import ErrorResponse
from spotmap.services.cors import CorsGate
from spotmap.services.rate_limiter import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from spotmap.services.spot_service import SpotService
from spotmap.services.spot_store import build_engine, create_schema, seed_if_empty

logger = structlog.get_logger(__name__)


def build_rate_limiter(cfg: Settings) -> RateLimiter:
    if cfg.ENABLE_REDIS and cfg.REDIS_URL:
        logger.info("rate_limiter_backend", backend="redis")
        return RedisRateLimiter(Redis.from_url(cfg.REDIS_URL))
    logger.info("rate_limiter_backend", backend="memory")
    return InMemoryRateLimiter()


async def _sweep_periodically(limiter: RateLimiter, interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            await limiter.sweep()
        except Exception as e:
            logger.error("rate_limit_sweep_failed", error=str(e))


def create_app(
    cfg: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    cfg = cfg or default_settings

    # --- Application Lifecycle Management ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("application_startup", version=cfg.VERSION, env=cfg.ENV)

        store = engine if engine is not None else build_engine(cfg.DATABASE_URL)
        await run_in_threadpool(create_schema, store)
        if cfg.SPOTS_SEED_FILE:
            await run_in_threadpool(seed_if_empty, store, cfg.SPOTS_SEED_FILE)

        app.state.spot_service = SpotService(store, include_total=cfg.SPOTS_INCLUDE_TOTAL)
        app.state.rate_limiter = rate_limiter if rate_limiter is not None else build_rate_limiter(cfg)
        sweeper = asyncio.create_task(
            _sweep_periodically(app.state.rate_limiter, cfg.RATE_LIMIT_SWEEP_SECONDS)
        )

        yield

        logger.info("application_shutdown")
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        await app.state.rate_limiter.close()
        if engine is None:
            store.dispose()

    app = FastAPI(
        title=cfg.PROJECT_NAME,
        version=cfg.VERSION,
        description=cfg.BRIEF_DESCRIPTION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = cfg
    app.state.cors_gate = CorsGate(
        cfg.CORS_ALLOWED_ORIGINS,
        dev_host=cfg.CORS_DEV_HOST,
        development=cfg.ENV.lower() == "development",
        preflight_max_age=cfg.CORS_PREFLIGHT_MAX_AGE,
    )

    # Added last runs first: request logging wraps the CORS gate.
    app.add_middleware(CorsGateMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.include_router(api_router, prefix="/api")

    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check(request: Request):
        store_ok = await run_in_threadpool(request.app.state.spot_service.ping)
        return {"status": "ok" if store_ok else "degraded", "store": store_ok}

    # --- Global Exception Handler (for unhandled errors) ---
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())
        logger.error("unhandled_exception", error_id=error_id, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": ErrorResponse(
                    error="INTERNAL_SERVER_ERROR",
                    detail="An unexpected error occurred. Please report this error ID.",
                    error_id=error_id,
                ).model_dump(exclude_none=True)
            },
        )

    return app


configure_logging()
app = create_app()
