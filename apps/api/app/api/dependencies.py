from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from ..core.config import get_settings
from ..core.errors import UnauthorizedError
from ..core.security import decode_access_token
from ..db import get_sessionmaker
from ..domain.claims import ClaimAction, ClaimSubject
from ..domain.users import User
from ..repositories.users import (
    InMemoryUsersRepository,
    SqlAlchemyUsersRepository,
    UsersRepository,
)
from ..services.auth import AuthService
from ..services.mailer import Mailer, build_mailer
from ..services.policies import authorize

_http_bearer = HTTPBearer(auto_error=False)
_memory_users: InMemoryUsersRepository | None = None
_mailer: Mailer | None = None


async def get_users_repository() -> AsyncIterator[UsersRepository]:
    global _memory_users
    settings = get_settings()
    if settings.storage_backend == "memory":
        if _memory_users is None:
            _memory_users = InMemoryUsersRepository()
        yield _memory_users
        return
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        yield SqlAlchemyUsersRepository(session)


async def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = build_mailer()
    return _mailer


async def get_auth_service(
    users_repo: UsersRepository = Depends(get_users_repository),
    mailer: Mailer = Depends(get_mailer),
) -> AuthService:
    return AuthService(users_repo, mailer)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_http_bearer),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> User:
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as exc:
        raise UnauthorizedError("Invalid token") from exc
    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise UnauthorizedError("Invalid token")
    try:
        user_id = UUID(subject)
    except ValueError as exc:
        raise UnauthorizedError("Invalid token") from exc
    user = await users_repo.get(user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return user


def require_claim(
    action: ClaimAction, subject: ClaimSubject
) -> Callable[..., Coroutine[Any, Any, User]]:
    """Dependency factory rejecting callers without an unrestricted claim."""

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        authorize(current_user, action, subject)
        return current_user

    return dependency
