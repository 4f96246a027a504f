"""User models for the CAS authentication layer"""

from enum import Enum

from sqlalchemy import Boolean, Column, String

from ..models.base import BaseModel


class UserRole(Enum):
    """User roles for role-based access control"""

    ADMIN = "admin"  # Manages system plugins and permission grants
    POWER_USER = "power_user"
    REGULAR_USER = "regular_user"


class User(BaseModel):
    """Identity of a caller, issued by the external authentication service"""

    __tablename__ = "users"

    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, default=UserRole.REGULAR_USER.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Set from ADMIN_EMAILS when the user is loaded; not persisted
    configured_admin = False

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role}')>"

    @property
    def is_admin(self) -> bool:
        """Administrators may toggle system plugins and manage grants"""
        return self.role == UserRole.ADMIN.value or self.configured_admin

    def can_manage_system_plugins(self) -> bool:
        return self.is_admin
