"""Bearer token authentication.

Tokens are issued by the identity service and signed with the shared
``SECRET_KEY``. This module verifies them and turns the claims into a
:class:`CurrentUser` whose role is read from the stored user record.
"""
import logging
import uuid
from typing import Any, Dict, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_async_session
from ..models.enums import RoleName
from ..models.organization import CurrentUser
from ..repositories.user import UserRepository

# Set up logging
logger = logging.getLogger(__name__)

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry and return the token claims."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def user_from_claims(payload: Dict[str, Any]) -> CurrentUser:
    """Build the actor from token claims (``sub``/``userId`` and ``roleName``)."""
    raw_id = payload.get("sub") or payload.get("userId")
    raw_role = payload.get("roleName")
    if not raw_id or not raw_role:
        logger.warning("[AUTH] Token is missing user id or role claim")
        raise _unauthorized("Token is missing required claims")

    try:
        user_id = uuid.UUID(str(raw_id))
        role = RoleName(raw_role)
    except ValueError:
        logger.warning(f"[AUTH] Token carries invalid claims: id={raw_id}, role={raw_role}")
        raise _unauthorized("Token carries invalid claims")

    return CurrentUser(
        id=user_id,
        role_name=role,
        email=payload.get("email"),
        name=payload.get("name"),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_async_session),
) -> CurrentUser:
    """Validate the bearer token and return the current actor.

    The stored role replaces the ``roleName`` claim; a token for an unknown user
    is rejected.
    """
    try:
        payload = decode_token(credentials.credentials)
    except JWTError as jwt_error:
        logger.warning(f"[AUTH] Token validation failed: {str(jwt_error)}")
        raise _unauthorized("Could not validate credentials")

    user = user_from_claims(payload)

    stored_role = await UserRepository(db).get_main_role(user.id)
    if stored_role is None:
        logger.warning(f"[AUTH] Token subject {user.id} is not a known user")
        raise _unauthorized("Could not validate credentials")
    if stored_role != user.role_name:
        logger.info(
            f"[AUTH] User {user.id} role changed from {user.role_name.value} to {stored_role.value}"
        )
        user = user.model_copy(update={"role_name": stored_role})

    logger.debug(f"[AUTH] Authenticated user {user.id} with role {user.role_name.value}")
    return user


def require_any_role(roles: Iterable[RoleName]):
    """
    Dependency to require any of the specified main roles.

    Usage:
        @router.post("/", dependencies=[Depends(require_any_role([RoleName.ADMINISTRATOR]))])
    """
    allowed = frozenset(roles)

    async def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role_name not in allowed:
            logger.warning(
                f"[ROLE_CHECK] User {current_user.id} with role {current_user.role_name.value} "
                f"is not one of {sorted(r.value for r in allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have any of required roles: {sorted(r.value for r in allowed)}",
            )
        return current_user

    return role_checker
