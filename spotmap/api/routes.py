# spotmap/api/routes.py
# Read-only spot listing: rate limit -> validate -> query -> paged JSON.

import asyncio

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from spotmap.core.config import Settings
from spotmap.models.dto import ErrorResponse, Pagination, SpotsResponse
from spotmap.services.rate_limiter import RateLimiter, RateLimitResult
from spotmap.services.spot_service import SpotService, SpotStoreError
from spotmap.services.validation import QueryValidationError, parse_filter_criteria
from spotmap.utils.security import get_client_ip

router = APIRouter()
logger = structlog.get_logger(__name__)


def _rate_limit_headers(result: RateLimitResult, limit: int) -> dict:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time),
    }


def _spots_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ErrorResponse(
            error="SPOTS_UNAVAILABLE",
            detail="Failed to load spots.",
        ).model_dump(exclude_none=True),
    )


# ----------------------------------------------------------------------
# Spots listing endpoint
# ----------------------------------------------------------------------
@router.get(
    "/spots",
    response_model=SpotsResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def list_spots(request: Request):
    """Return one page of spots matching the bounds/search filters."""
    cfg: Settings = request.app.state.settings
    limiter: RateLimiter = request.app.state.rate_limiter
    spot_service: SpotService = request.app.state.spot_service

    # 1. Rate limit per client identifier
    ip = get_client_ip(request)
    rate_headers = {}
    try:
        result = await limiter.check(ip, cfg.RATE_LIMIT_REQUESTS, cfg.RATE_LIMIT_WINDOW_MS)
    except RuntimeError as e:
        # Soft guard: a broken counter store must not take the listing down.
        logger.error("rate_limit_check_failed", error=str(e), client_ip=ip)
        result = None

    if result is not None:
        rate_headers = _rate_limit_headers(result, cfg.RATE_LIMIT_REQUESTS)
        if not result.allowed:
            retry_after = result.retry_after_seconds()
            logger.warning("rate_limit_exceeded", client_ip=ip, reset_time=result.reset_time)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=ErrorResponse(
                    error="RATE_LIMIT_EXCEEDED",
                    detail="Too many requests. Please slow down.",
                    retry_after_seconds=retry_after,
                ).model_dump(exclude_none=True),
                headers={"Retry-After": str(retry_after), **rate_headers},
            )

    # 2. Validate query parameters
    try:
        criteria = parse_filter_criteria(
            request.query_params,
            default_limit=cfg.DEFAULT_PAGE_LIMIT,
            max_limit=cfg.MAX_PAGE_LIMIT,
            max_search_length=cfg.MAX_SEARCH_LENGTH,
        )
    except QueryValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorResponse(
                error="INVALID_QUERY_PARAMETERS",
                detail="One or more query parameters are invalid.",
                violations=e.violations,
            ).model_dump(exclude_none=True),
            headers=rate_headers,
        )

    # 3. Query the store (fail fast, no retries)
    try:
        page = await asyncio.wait_for(
            run_in_threadpool(spot_service.query, criteria),
            timeout=cfg.QUERY_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error("spot_query_timeout", timeout_seconds=cfg.QUERY_TIMEOUT_SECONDS)
        raise _spots_unavailable()
    except SpotStoreError:
        raise _spots_unavailable()

    body = SpotsResponse(
        spots=page.spots,
        pagination=Pagination(
            limit=criteria.limit,
            offset=criteria.offset,
            has_more=page.has_more,
            total=page.total,
        ),
    )
    return JSONResponse(
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers={"Cache-Control": cfg.CACHE_CONTROL, **rate_headers},
    )
