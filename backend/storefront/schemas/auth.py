"""
Authentication schemas.

Tokens are issued by the identity provider; the service only needs the
account id and role they carry.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Marketplace account roles."""

    GUEST = "guest"
    USER = "user"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class TokenPayload(BaseModel):
    """Claims required from an access token."""

    model_config = ConfigDict(extra="ignore")

    sub: str = Field(..., min_length=1, max_length=64, description="Account id")
    role: UserRole = Field(default=UserRole.USER, description="Account role")


class Principal(BaseModel):
    """Authenticated caller."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def has_role(self, *roles: UserRole) -> bool:
        """Check if the caller holds any of ``roles``."""
        return self.role in roles
