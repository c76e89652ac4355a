from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .claims import Claim, Role

DELETE_CONFIRMATION = "DELETE USER"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserBase(_CamelModel):
    """Shared fields for user representations."""

    email: EmailStr = Field(..., description="Primary email used for login and notifications")
    first_name: Optional[str] = Field(default=None, max_length=80)
    last_name: Optional[str] = Field(default=None, max_length=80)


class UserCreate(UserBase):
    """Payload accepted when creating a new user."""

    password: str = Field(
        ..., min_length=8, max_length=72, description="Raw password to be hashed"
    )
    roles: list[Role] = Field(default_factory=lambda: [Role.USER])
    claims: list[Claim] = Field(default_factory=list)
    email_verified: bool = False


class UserUpdate(_CamelModel):
    """Partial update; only fields that were sent are applied."""

    first_name: Optional[str] = Field(default=None, max_length=80)
    last_name: Optional[str] = Field(default=None, max_length=80)
    roles: Optional[list[Role]] = None
    claims: Optional[list[Claim]] = None

    @field_validator("roles", "claims")
    @classmethod
    def _not_null(cls, value, info):
        # Omit the field to leave it unchanged.
        if value is None:
            raise ValueError(f"{info.field_name} must be a list")
        return value


class User(UserBase):
    """Persisted user profile, without credentials."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: UUID = Field(default_factory=uuid4)
    roles: list[Role] = Field(default_factory=lambda: [Role.USER])
    claims: list[Claim] = Field(default_factory=list)
    email_verified: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    last_login_at: Optional[datetime] = None


class UserDeleteRequest(_CamelModel):
    confirmation_string: Optional[str] = None
