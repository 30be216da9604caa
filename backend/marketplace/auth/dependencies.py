"""FastAPI dependencies for authentication and authorization."""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from marketplace.database import get_db
from marketplace.errors import AccessDenied, NotAuthenticated
from marketplace.models.user import User
from marketplace.auth.security import decode_token

security = HTTPBearer(auto_error=False)

_BEARER = {"WWW-Authenticate": "Bearer"}


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the authenticated user from the Bearer access token.
    Raises NotAuthenticated if the token is missing, invalid, or the user no longer exists.
    """
    if credentials is None:
        raise NotAuthenticated(headers=_BEARER)

    payload = decode_token(credentials.credentials)
    if payload is None or payload.get("type") != "access":
        raise NotAuthenticated("Invalid or expired token", headers=_BEARER)

    user_id = payload.get("sub")
    if user_id is None:
        raise NotAuthenticated("Invalid token", headers=_BEARER)

    result = await db.execute(select(User).where(User.uuid == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise NotAuthenticated("User not found", headers=_BEARER)

    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Reject suspended accounts."""
    if current_user.status != "active":
        raise AccessDenied("User account is not active")
    return current_user


async def admin_required(current_user: User = Depends(get_current_active_user)) -> User:
    """Restrict an endpoint to administrators."""
    if current_user.user_role != "admin":
        raise AccessDenied("Admin access required")
    return current_user
