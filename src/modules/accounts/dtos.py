"""Identity DTOs for the Service Layer.

Immutable Pydantic v2 models passed from the API layer to
``IdentityService``.  Password strength is not judged here; the service
runs Django's configured password validators.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from modules.accounts.models import Role


class RegisterIdentityDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class UpdateProfileDTO(BaseModel):
    """Self-service profile update.  Only supplied fields change."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=1, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class AdminUpdateIdentityDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        """Accept the role by name (``"admin"``) or by its ordinal."""
        if isinstance(v, str) and not v.isdigit():
            try:
                return Role[v.strip().upper()]
            except KeyError:
                raise ValueError("role must be one of user, admin, super_admin") from None
        if isinstance(v, str):
            return int(v)
        return v
