"""Minimal end-to-end smoke test for the accounts API."""

from __future__ import annotations

import asyncio
import os
import re

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("MAIL_BACKEND", "memory")

from fastapi.testclient import TestClient

from apps.api.app.api.dependencies import get_mailer, get_users_repository
from apps.api.app.domain.claims import Role
from apps.api.app.domain.users import UserCreate
from apps.api.app.main import create_app
from apps.api.app.repositories.users import InMemoryUsersRepository
from apps.api.app.services.mailer import InMemoryMailer

VERIFY_LINK = re.compile(r"/verify-email/([A-Za-z0-9_-]+)")
ADMIN_EMAIL = "smoke-admin@example.com"
USER_EMAIL = "smoke@example.com"
PASSWORD = "smoke-secret"


async def _bootstrap_admin(repo: InMemoryUsersRepository) -> None:
    """Seed an administrator that is allowed to list users."""

    await repo.create(
        UserCreate(
            email=ADMIN_EMAIL,
            password=PASSWORD,
            first_name="Smoke",
            last_name="Admin",
            roles=[Role.ADMIN],
            email_verified=True,
        )
    )


def _run_smoke() -> None:
    repo = InMemoryUsersRepository()
    mailer = InMemoryMailer()
    asyncio.run(_bootstrap_admin(repo))

    async def _repo_override():
        yield repo

    async def _mailer_override():
        return mailer

    app = create_app()
    app.dependency_overrides[get_users_repository] = _repo_override
    app.dependency_overrides[get_mailer] = _mailer_override
    client = TestClient(app)

    register_response = client.post(
        "/auth/email/register",
        json={"email": USER_EMAIL, "password": PASSWORD, "firstName": "Smoke"},
    )
    register_response.raise_for_status()

    message = mailer.last_to(USER_EMAIL)
    assert message is not None, "verification email was not sent"
    match = VERIFY_LINK.search(message.body)
    assert match is not None, "verification link missing from email"
    client.get(f"/auth/email/verify/{match.group(1)}").raise_for_status()

    login_response = client.post(
        "/auth/email/login",
        json={"email": USER_EMAIL, "password": PASSWORD},
    )
    login_response.raise_for_status()
    assert login_response.json()["data"]["user"]["emailVerified"] is True

    admin_login = client.post(
        "/auth/email/login",
        json={"email": ADMIN_EMAIL, "password": PASSWORD},
    )
    admin_login.raise_for_status()
    access_token = admin_login.json()["data"]["accessToken"]

    list_response = client.get(
        "/user",
        params={"limit": 10},
        headers={"Authorization": f"Bearer {access_token}"},
    )
    list_response.raise_for_status()
    body = list_response.json()
    assert body["isPaginated"] is True
    assert body["pagination"]["count"] == 2

    print("Smoke test passed: user count", body["pagination"]["count"])


def main() -> None:
    _run_smoke()


if __name__ == "__main__":
    main()
