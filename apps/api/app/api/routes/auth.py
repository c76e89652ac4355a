from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import EmailStr

from ...domain.auth import (
    EmailVerificationMessage,
    ForgotPasswordMessage,
    LoginMessage,
    LoginRequest,
    RegisterRequest,
    ResetPasswordMessage,
    ResetPasswordRequest,
)
from ...services.auth import AuthService
from ...services.standard_response import (
    StandardParams,
    StandardResponseRoute,
    standard_response,
)
from ..dependencies import get_auth_service

router = APIRouter(prefix="/auth", tags=["auth"], route_class=StandardResponseRoute)


@router.post("/email/login", status_code=status.HTTP_201_CREATED)
async def login(
    payload: LoginRequest,
    params: StandardParams = Depends(standard_response()),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    token = await auth.login(payload.email, payload.password)
    params.set_message(LoginMessage.SUCCESS)
    return token.model_dump(mode="json", by_alias=True)


@router.post("/email/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    params: StandardParams = Depends(standard_response()),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Register a new user and send them an email verification link.

    When the email is already registered and the password matches, this
    logs the user in instead.
    """

    outcome = await auth.register(payload)
    params.set_message(outcome.message)
    if outcome.token is None:
        return {}
    return outcome.token.model_dump(mode="json", by_alias=True)


@router.get("/email/verify/{token}")
async def verify_email(
    token: str,
    params: StandardParams = Depends(standard_response()),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    await auth.verify_email(token)
    params.set_message(EmailVerificationMessage.SUCCESS)
    return {}


@router.post("/email/resend-verification/{email}", status_code=status.HTTP_201_CREATED)
async def resend_verification(
    email: EmailStr,
    params: StandardParams = Depends(standard_response()),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    await auth.send_email_verification(email)
    params.set_message(EmailVerificationMessage.EMAIL_RESENT)
    return {}


@router.post("/email/forgot-password/{email}", status_code=status.HTTP_201_CREATED)
async def forgot_password(
    email: EmailStr,
    params: StandardParams = Depends(standard_response()),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    await auth.send_email_forgot_password(email)
    params.set_message(ForgotPasswordMessage.EMAIL_SENT)
    return {}


@router.post("/email/reset-password", status_code=status.HTTP_200_OK)
async def reset_password(
    payload: ResetPasswordRequest,
    params: StandardParams = Depends(standard_response()),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Set a new password using a reset token or the current password."""

    if payload.reset_password_token:
        await auth.reset_password_from_token(
            payload.reset_password_token, payload.password
        )
    else:
        await auth.reset_password_from_current_password(
            payload.email, payload.current_password, payload.password
        )
    params.set_message(ResetPasswordMessage.SUCCESS)
    return {}
