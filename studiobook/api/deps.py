from functools import lru_cache
from typing import Annotated

from fastapi import BackgroundTasks, Depends, Header, Request, Response
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.exceptions import AuthenticationError, PermissionDenied, RateLimitExceeded
from ..core.rate_limit import RateLimitRule, get_client_identifier, limiter
from ..core.security import decode_user_id
from ..db.models import User
from ..db.session import get_db
from ..services.notification_service import (
    BackgroundDispatcher,
    NotificationDispatcher,
    build_dispatcher,
)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    if not token:
        raise AuthenticationError("Authentication required")
    user_id = decode_user_id(token)
    user = db.get(User, user_id) if user_id is not None else None
    if user is None:
        raise AuthenticationError("Could not validate credentials")
    return user


def require_roles(*roles: str):
    def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role.value not in roles:
            raise PermissionDenied("Forbidden")
        return user

    return dependency


@lru_cache(maxsize=1)
def get_dispatcher() -> NotificationDispatcher:
    return build_dispatcher()


def get_background_dispatcher(
    background_tasks: BackgroundTasks,
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> BackgroundDispatcher:
    return BackgroundDispatcher(dispatcher, background_tasks)


def verify_cron_secret(authorization: Annotated[str | None, Header()] = None) -> None:
    secret = get_settings().cron_secret
    if not secret or authorization != f"Bearer {secret}":
        raise AuthenticationError("Invalid cron secret")


def rate_limit(scope: str):
    """Limit a route per client using the ``RATE_LIMIT_<SCOPE>`` setting."""

    def dependency(request: Request, response: Response) -> None:
        settings = get_settings()
        rule = RateLimitRule.parse(getattr(settings, f"rate_limit_{scope}"))
        key = f"{scope}:{get_client_identifier(request)}"
        result = limiter.check(key, rule)
        if not result.allowed:
            raise RateLimitExceeded(
                limit=result.limit,
                retry_after=result.retry_after,
                reset_at=result.reset_at,
            )
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(int(result.reset_at))

    return dependency
