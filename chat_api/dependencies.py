"""
dependencies.py
---------------
FastAPI dependency injection functions for services, authentication and
authorisation.

Flow:
  1. The Authorization header is parsed by extract_bearer (exactly
     "Bearer <token>"; anything else counts as no token).
  2. AuthService.resolve_identity validates the JWT and confirms the user
     still exists in the DB.
  3. get_current_user rejects with 401 (MISSING_TOKEN / INVALID_TOKEN /
     USER_NOT_FOUND); get_optional_user swallows those and yields None.
  4. require_ownership and rate_limit_by_user layer owner and per-user
     throttling checks on top of get_current_user.

Services themselves are built once in the lifespan and live on app.state.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from chat_api.core.exceptions import AuthError, PermissionDeniedError, ValidationError
from chat_api.core.logging import get_logger
from chat_api.core.rate_limit import RateLimiter
from chat_api.core.security import extract_bearer
from chat_api.repositories.message_repository import MessageRepository
from chat_api.repositories.user_repository import UserRepository
from chat_api.services.auth_service import AuthService, Identity

logger = get_logger(__name__)


# ── Services ──────────────────────────────────────────────────────────────────

def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.user_repository


def get_message_repository(request: Request) -> MessageRepository:
    return request.app.state.message_repository


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ── Authentication ────────────────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> Identity:
    """
    Resolve the caller from the bearer token.
    Raises 401 if the token is missing, invalid, or the user no longer exists.
    """
    identity = await auth.resolve_identity(extract_bearer(authorization))
    request.state.identity = identity
    return identity


async def get_optional_user(
    request: Request,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> Optional[Identity]:
    """Same resolution as get_current_user, but failures leave the caller anonymous."""
    token = extract_bearer(authorization)
    if token is None:
        return None
    try:
        identity = await auth.resolve_identity(token)
    except AuthError as exc:
        logger.debug("Ignoring unusable token on optional-auth route", reason=exc.code)
        return None
    request.state.identity = identity
    return identity


CurrentUser = Annotated[Identity, Depends(get_current_user)]
OptionalUser = Annotated[Optional[Identity], Depends(get_optional_user)]


# ── Authorisation ─────────────────────────────────────────────────────────────

def require_ownership(field: str = "from_user"):
    """
    Build a dependency that only lets the caller through when the value
    under ``field`` (path, then JSON body, then query string) is their own
    user id.
    """

    async def check_ownership(request: Request, identity: CurrentUser) -> Identity:
        owner_id = request.path_params.get(field)

        if not owner_id and await request.body():
            try:
                payload = await request.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                owner_id = payload.get(field)

        if not owner_id:
            owner_id = request.query_params.get(field)

        if not owner_id:
            raise ValidationError(f"{field} is required", code="MISSING_RESOURCE_USER_ID")

        if owner_id != identity.user_id:
            logger.warning(
                "Ownership check failed",
                user_id=identity.user_id,
                path=request.url.path,
            )
            raise PermissionDeniedError()

        return identity

    return check_ownership


def rate_limit_by_user(limiter_name: str):
    """
    Build a dependency enforcing a per-user fixed window. The RateLimiter
    is read from ``app.state.<limiter_name>``; the lifespan builds one per
    throttled route so counters live and die with the application.
    """

    async def check_rate_limit(request: Request, identity: CurrentUser) -> Identity:
        limiter: RateLimiter = getattr(request.app.state, limiter_name)
        limiter.hit(identity.user_id)
        return identity

    return check_rate_limit
