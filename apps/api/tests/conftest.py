"""Pytest configuration and fixtures for API tests."""

import asyncio
import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("MAIL_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENABLE_PROMETHEUS_METRICS", "false")

import pytest
from fastapi.testclient import TestClient

from apps.api.app.api.dependencies import get_mailer, get_users_repository
from apps.api.app.core.security import create_access_token
from apps.api.app.domain.claims import Claim, Role
from apps.api.app.domain.users import User, UserCreate
from apps.api.app.main import create_app
from apps.api.app.repositories.users import InMemoryUsersRepository
from apps.api.app.services.mailer import InMemoryMailer

PASSWORD = "correct-horse-battery"


@pytest.fixture
def users_repo():
    """A fresh in-memory user store per test."""
    return InMemoryUsersRepository()


@pytest.fixture
def mailer():
    return InMemoryMailer()


@pytest.fixture
def app(users_repo, mailer):
    application = create_app()

    async def _users_repo_override():
        yield users_repo

    async def _mailer_override():
        return mailer

    application.dependency_overrides[get_users_repository] = _users_repo_override
    application.dependency_overrides[get_mailer] = _mailer_override
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def add_user(
    repo: InMemoryUsersRepository,
    email: str,
    *,
    first_name: str = "Test",
    roles: list[Role] | None = None,
    claims: list[Claim] | None = None,
    verified: bool = True,
    password: str = PASSWORD,
) -> User:
    """Insert a user directly into the repository."""
    payload = UserCreate(
        email=email,
        password=password,
        first_name=first_name,
        roles=roles or [Role.USER],
        claims=claims or [],
        email_verified=verified,
    )
    return asyncio.run(repo.create(payload))


@pytest.fixture
def make_user(users_repo):
    def _make(email: str, **kwargs) -> User:
        return add_user(users_repo, email, **kwargs)

    return _make


def bearer(user: User) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user.id), "roles": [role.value for role in user.roles]}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
def verified_user(users_repo):
    return add_user(users_repo, "martha@example.com", first_name="Martha")


@pytest.fixture
def admin_user(users_repo):
    return add_user(users_repo, "charles@example.com", first_name="Charles", roles=[Role.ADMIN])
