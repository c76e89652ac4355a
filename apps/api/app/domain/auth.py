"""Schemas and user-facing messages for authentication endpoints."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


class LoginMessage(str, Enum):
    SUCCESS = "Login successful"
    AUTO_SWITCH = "Email already registered, logged in instead"


class LoginError(str, Enum):
    INVALID_CREDENTIALS = "Invalid email or password"
    EMAIL_NOT_VERIFIED = "Email has not been verified"


class RegistrationMessage(str, Enum):
    VERIFY_EMAIL_TO_PROCEED = "Registration successful, verify your email to proceed"
    AUTO_LOGIN = "Registration successful, you are now logged in"


class RegistrationError(str, Enum):
    EMAIL_ALREADY_REGISTERED = "Email is already registered"


class EmailVerificationMessage(str, Enum):
    SUCCESS = "Email verified"
    EMAIL_RESENT = "Verification email sent"


class EmailVerificationError(str, Enum):
    INVALID_TOKEN = "Verification token is invalid or has expired"
    ALREADY_VERIFIED = "Email is already verified"


class ForgotPasswordMessage(str, Enum):
    EMAIL_SENT = "Password reset email sent"


class ResetPasswordMessage(str, Enum):
    SUCCESS = "Password changed"


class ResetPasswordError(str, Enum):
    INVALID_TOKEN = "Password reset token is invalid or has expired"
    WRONG_PASSWORD = "Current password is incorrect"
    MISSING_CREDENTIALS = "Provide either resetPasswordToken or email and currentPassword"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(_CamelModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, max_length=72)


class RegisterRequest(_CamelModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, max_length=72, description="User password")
    first_name: Optional[str] = Field(default=None, max_length=80)
    last_name: Optional[str] = Field(default=None, max_length=80)


class ResetPasswordRequest(_CamelModel):
    """New password plus either a reset token or the current credentials."""

    password: str = Field(..., min_length=8, max_length=72)
    reset_password_token: Optional[str] = None
    email: Optional[EmailStr] = None
    current_password: Optional[str] = Field(default=None, max_length=72)

    @model_validator(mode="after")
    def _require_proof(self) -> "ResetPasswordRequest":
        if self.reset_password_token:
            return self
        if self.email and self.current_password:
            return self
        raise ValueError(ResetPasswordError.MISSING_CREDENTIALS.value)


class TokenResponse(_CamelModel):
    """Returned by login and by registrations that log in straight away."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict[str, Any]
