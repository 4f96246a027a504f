"""Authentication dependencies for the CAS API"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings_instance
from ..core.database import get_db
from ..core.exceptions import AuthenticationError, StoreUnavailableError
from ..core.logging import get_logger
from .jwt_manager import JWTManager
from .models import User

logger = get_logger(__name__)


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return getattr(request.app.state, "settings", None) or get_settings_instance()


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the caller from an ``Authorization: Bearer <jwt>`` header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise AuthenticationError("Authentication required")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("Unsupported Authorization scheme")

    token = auth_header.split(" ", 1)[1]
    user_data = JWTManager(settings).extract_user_from_token(token)
    if not user_data:
        raise AuthenticationError("Invalid or expired token")

    try:
        result = await db.execute(select(User).where(User.id == user_data["user_id"]))
        user = result.scalar_one_or_none()
    except (SQLAlchemyError, OSError) as e:
        raise StoreUnavailableError("load_user", str(e)) from e

    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive", details={"user_id": user_data["user_id"]})

    user.configured_admin = user.email.lower() in settings.admin_emails
    request.state.user_id = user.id
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require administrator capability for endpoint access"""
    if not current_user.is_admin:
        logger.warning(f"Admin access denied for user {current_user.email} ({current_user.role})")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
