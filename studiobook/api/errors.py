import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import RateLimitExceeded, StudioError

logger = logging.getLogger(__name__)


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    reset_time = datetime.fromtimestamp(exc.reset_at, tz=timezone.utc)
    content = exc.to_payload()
    content.update(retryAfter=exc.retry_after, resetTime=reset_time.isoformat())
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers={
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(exc.reset_at)),
            "Retry-After": str(exc.retry_after),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(StudioError, studio_error_handler)
