"""JWT token management for CAS authentication"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from ..core.config import Settings, get_settings_instance
from ..core.logging import get_logger

logger = get_logger(__name__)


class JWTManager:
    """Verifies access tokens issued for CAS users.

    Tokens are minted by the authentication service; ``create_access_token``
    exists for tooling and tests that need a token signed with the same key.
    """

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings_instance()
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.jwt_access_token_expire_minutes

        if not self.secret_key:
            raise ValueError("JWT_SECRET_KEY not configured in settings")

    def create_access_token(self, user_data: dict[str, Any]) -> str:
        """Create JWT access token with user information"""
        now = datetime.now(timezone.utc)
        payload = {
            "user_id": user_data["user_id"],
            "email": user_data["email"],
            "role": user_data["role"],
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "iat": now,
            "type": "access",
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Verify and decode JWT token"""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            return None

    def extract_user_from_token(self, token: str) -> dict[str, Any] | None:
        """Extract user information from access token"""
        payload = self.verify_token(token)
        if not payload or payload.get("type") != "access" or not payload.get("user_id"):
            return None

        return {
            "user_id": payload.get("user_id"),
            "email": payload.get("email"),
            "role": payload.get("role"),
        }
