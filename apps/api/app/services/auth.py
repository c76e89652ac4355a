"""Email/password authentication flows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

import structlog

from ..core.config import Settings, get_settings
from ..core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from ..core.security import (
    create_access_token,
    generate_one_time_token,
    hash_one_time_token,
    verify_password,
)
from ..domain.auth import (
    EmailVerificationError,
    LoginError,
    LoginMessage,
    RegisterRequest,
    RegistrationError,
    RegistrationMessage,
    ResetPasswordError,
    TokenResponse,
)
from ..domain.users import User, UserCreate
from ..repositories.users import DuplicateEmailError, TokenPurpose, UsersRepository
from .mailer import Mailer, reset_password_message, verification_message
from .policies import serialize_user

logger = structlog.get_logger(__name__)

USER_NOT_FOUND = "User not found"


@dataclass(frozen=True)
class AuthOutcome:
    """What a login-like flow produced and the message to show for it."""

    message: Enum
    token: TokenResponse | None = None


class AuthService:
    def __init__(
        self,
        users_repo: UsersRepository,
        mailer: Mailer,
        settings: Settings | None = None,
    ) -> None:
        self._users = users_repo
        self._mailer = mailer
        self._settings = settings or get_settings()

    async def login(self, email: str, password: str) -> TokenResponse:
        user = await self._users.get_by_email(email)
        if user is None:
            raise UnauthorizedError(LoginError.INVALID_CREDENTIALS.value)
        password_hash = await self._users.get_password_hash(user.id)
        if not password_hash or not verify_password(password, password_hash):
            raise UnauthorizedError(LoginError.INVALID_CREDENTIALS.value)
        if self._settings.email_verification_required and not user.email_verified:
            raise ForbiddenError(LoginError.EMAIL_NOT_VERIFIED.value)

        user = await self._users.touch_last_login(user.id) or user
        logger.info("user_logged_in", user_id=str(user.id))
        return self._issue_token(user)

    async def register(self, payload: RegisterRequest) -> AuthOutcome:
        """Create an account, or log in when the credentials already match one.

        An existing account whose password does not match keeps the conflict
        error; one that matches but is unverified surfaces the login error.
        """

        create = UserCreate(
            email=payload.email,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email_verified=not self._settings.email_verification_required,
        )
        try:
            user = await self._users.create(create)
        except DuplicateEmailError as exc:
            conflict = ConflictError(RegistrationError.EMAIL_ALREADY_REGISTERED.value)
            try:
                token = await self.login(payload.email, payload.password)
            except UnauthorizedError:
                raise conflict from exc
            return AuthOutcome(message=LoginMessage.AUTO_SWITCH, token=token)

        logger.info("user_registered", user_id=str(user.id))
        if self._settings.email_verification_required:
            await self._send_verification(user)
            return AuthOutcome(message=RegistrationMessage.VERIFY_EMAIL_TO_PROCEED)
        token = await self.login(payload.email, payload.password)
        return AuthOutcome(message=RegistrationMessage.AUTO_LOGIN, token=token)

    async def verify_email(self, token: str) -> User:
        user = await self._users.find_by_token(
            TokenPurpose.VERIFY_EMAIL, hash_one_time_token(token)
        )
        if user is None:
            raise BadRequestError(EmailVerificationError.INVALID_TOKEN.value)
        verified = await self._users.set_email_verified(user.id)
        await self._users.clear_token(user.id, TokenPurpose.VERIFY_EMAIL)
        logger.info("email_verified", user_id=str(user.id))
        return verified or user

    async def send_email_verification(self, email: str) -> None:
        user = await self._users.get_by_email(email)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        if user.email_verified:
            raise BadRequestError(EmailVerificationError.ALREADY_VERIFIED.value)
        await self._send_verification(user)

    async def send_email_forgot_password(self, email: str) -> None:
        user = await self._users.get_by_email(email)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        ttl = self._settings.reset_token_ttl_minutes
        token = await self._issue_one_time_token(user, TokenPurpose.RESET_PASSWORD, ttl)
        await self._mailer.send(
            reset_password_message(
                to=user.email, name=user.first_name, token=token, ttl_minutes=ttl
            )
        )
        logger.info("password_reset_requested", user_id=str(user.id))

    async def reset_password_from_token(self, token: str, password: str) -> None:
        user = await self._users.find_by_token(
            TokenPurpose.RESET_PASSWORD, hash_one_time_token(token)
        )
        if user is None:
            raise BadRequestError(ResetPasswordError.INVALID_TOKEN.value)
        await self._users.set_password(user.id, password)
        await self._users.clear_token(user.id, TokenPurpose.RESET_PASSWORD)
        logger.info("password_reset", user_id=str(user.id), via="token")

    async def reset_password_from_current_password(
        self, email: str, current_password: str, password: str
    ) -> None:
        user = await self._users.get_by_email(email)
        if user is None:
            raise UnauthorizedError(ResetPasswordError.WRONG_PASSWORD.value)
        password_hash = await self._users.get_password_hash(user.id)
        if not password_hash or not verify_password(current_password, password_hash):
            raise UnauthorizedError(ResetPasswordError.WRONG_PASSWORD.value)
        await self._users.set_password(user.id, password)
        logger.info("password_reset", user_id=str(user.id), via="current_password")

    async def _send_verification(self, user: User) -> None:
        ttl = self._settings.verification_token_ttl_minutes
        token = await self._issue_one_time_token(user, TokenPurpose.VERIFY_EMAIL, ttl)
        await self._mailer.send(
            verification_message(
                to=user.email, name=user.first_name, token=token, ttl_minutes=ttl
            )
        )

    async def _issue_one_time_token(
        self, user: User, purpose: TokenPurpose, ttl_minutes: int
    ) -> str:
        token, digest = generate_one_time_token()
        expires_at = datetime.utcnow() + timedelta(minutes=ttl_minutes)
        await self._users.store_token(user.id, purpose, digest, expires_at)
        return token

    def _issue_token(self, user: User) -> TokenResponse:
        access_token = create_access_token(
            {"sub": str(user.id), "roles": [role.value for role in user.roles]}
        )
        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=self._settings.access_token_expire_minutes * 60,
            user=serialize_user(user, user),
        )
