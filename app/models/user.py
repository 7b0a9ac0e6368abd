"""
User models for the identity collaborator.
Authentication happens upstream; these only carry who is calling.
"""

from pydantic import BaseModel, Field
from enum import Enum


class UserRole(str, Enum):
    """Role tag stored on the user document (field "type")."""
    ADMIN = "admin"
    CLIENT = "client"
    UNSET = "unset"


class Principal(BaseModel):
    """The caller of an operation."""
    uid: str = Field(..., min_length=1, description="User id")
    role: UserRole = Field(default=UserRole.UNSET, description="Role tag from the users collection")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
