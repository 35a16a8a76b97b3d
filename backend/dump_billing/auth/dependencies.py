"""FastAPI dependencies for authentication and authorization."""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from dump_billing.database import get_db
from dump_billing.exceptions import AuthError, PermissionDeniedError
from dump_billing.models.user import User
from dump_billing.auth.security import decode_token

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the acting user from the Bearer token.

    The user id always comes from the verified token ``sub`` claim, never
    from the request body.
    """
    if credentials is None:
        raise AuthError("Not authenticated")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AuthError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token")

    result = await db.execute(select(User).where(User.uuid == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthError("User not found")

    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the current user is active."""
    if current_user.status != "active":
        raise PermissionDeniedError("User account is not active")
    return current_user


async def admin_required(current_user: User = Depends(get_current_active_user)) -> User:
    """Ensure the current user has the admin role."""
    if current_user.user_role != "admin":
        raise PermissionDeniedError("Admin access required")
    return current_user
