"""Authentication module for CAS"""

from .jwt_manager import JWTManager
from .models import User, UserRole

__all__ = ["JWTManager", "User", "UserRole"]
