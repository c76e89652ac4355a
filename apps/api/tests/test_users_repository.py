"""Behavioural tests shared by the in-memory and SQLAlchemy user repositories."""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from apps.api.app import models  # noqa: F401
from apps.api.app.core.security import verify_password
from apps.api.app.db import Base
from apps.api.app.domain.claims import Claim, ClaimAction, ClaimSubject, Role
from apps.api.app.domain.users import UserCreate, UserUpdate
from apps.api.app.repositories.users import (
    DuplicateEmailError,
    InMemoryUsersRepository,
    SqlAlchemyUsersRepository,
    TokenPurpose,
)


async def _with_repo(kind, scenario):
    if kind == "memory":
        return await scenario(InMemoryUsersRepository())

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        async with session_factory() as session:
            return await scenario(SqlAlchemyUsersRepository(session))
    finally:
        await engine.dispose()


@pytest.fixture(params=["memory", "sqlalchemy"])
def run(request):
    def _run(scenario):
        return asyncio.run(_with_repo(request.param, scenario))

    return _run


def _payload(email="ada@example.com", **kwargs):
    return UserCreate(email=email, password="a-long-password", first_name="Ada", **kwargs)


def test_create_and_lookup(run):
    async def scenario(repo):
        created = await repo.create(_payload(email="Ada@Example.com"))
        by_id = await repo.get(created.id)
        by_email = await repo.get_by_email("ADA@example.com")
        by_either = await repo.get_by_id_or_email(str(created.id))
        return created, by_id, by_email, by_either

    created, by_id, by_email, by_either = run(scenario)

    assert created.email == "ada@example.com"
    assert created.roles == [Role.USER]
    assert by_id.id == by_email.id == by_either.id == created.id


def test_duplicate_email_is_rejected(run):
    async def scenario(repo):
        await repo.create(_payload())
        with pytest.raises(DuplicateEmailError):
            await repo.create(_payload(email="ADA@example.com"))
        return await repo.count()

    assert run(scenario) == 1


def test_password_is_stored_hashed(run):
    async def scenario(repo):
        user = await repo.create(_payload())
        before = await repo.get_password_hash(user.id)
        await repo.set_password(user.id, "replacement-password")
        after = await repo.get_password_hash(user.id)
        return before, after

    before, after = run(scenario)

    assert before != "a-long-password"
    assert verify_password("a-long-password", before)
    assert verify_password("replacement-password", after)


def test_list_and_count(run):
    async def scenario(repo):
        for index in range(5):
            await repo.create(_payload(email=f"user{index}@example.com"))
        page = await repo.list(offset=1, limit=3)
        everything = await repo.list()
        return page, everything, await repo.count()

    page, everything, count = run(scenario)

    assert count == 5
    assert len(page) == 3
    assert len({user.email for user in everything}) == 5


def test_partial_update_keeps_unsent_fields(run):
    claim = Claim(action=ClaimAction.LIST, subject=ClaimSubject.USER)

    async def scenario(repo):
        user = await repo.create(_payload(last_name="Lovelace"))
        return await repo.update(
            user.id, UserUpdate(first_name="Augusta", claims=[claim])
        )

    updated = run(scenario)

    assert updated.first_name == "Augusta"
    assert updated.last_name == "Lovelace"
    assert updated.claims == [claim]


def test_delete(run):
    async def scenario(repo):
        user = await repo.create(_payload())
        first = await repo.delete(user.id)
        second = await repo.delete(user.id)
        return first, second, await repo.get_by_email(user.email)

    first, second, remaining = run(scenario)

    assert first is True
    assert second is False
    assert remaining is None


def test_tokens_are_matched_by_purpose_and_expiry(run):
    async def scenario(repo):
        user = await repo.create(_payload())
        future = datetime.utcnow() + timedelta(minutes=5)
        await repo.store_token(user.id, TokenPurpose.VERIFY_EMAIL, "verify-hash", future)
        await repo.store_token(
            user.id,
            TokenPurpose.RESET_PASSWORD,
            "reset-hash",
            datetime.utcnow() - timedelta(minutes=1),
        )
        found = await repo.find_by_token(TokenPurpose.VERIFY_EMAIL, "verify-hash")
        wrong_purpose = await repo.find_by_token(TokenPurpose.RESET_PASSWORD, "verify-hash")
        expired = await repo.find_by_token(TokenPurpose.RESET_PASSWORD, "reset-hash")
        await repo.clear_token(user.id, TokenPurpose.VERIFY_EMAIL)
        cleared = await repo.find_by_token(TokenPurpose.VERIFY_EMAIL, "verify-hash")
        return user, found, wrong_purpose, expired, cleared

    user, found, wrong_purpose, expired, cleared = run(scenario)

    assert found.id == user.id
    assert wrong_purpose is None
    assert expired is None
    assert cleared is None


def test_verification_and_last_login(run):
    async def scenario(repo):
        user = await repo.create(_payload())
        verified = await repo.set_email_verified(user.id)
        logged_in = await repo.touch_last_login(user.id)
        return user, verified, logged_in

    user, verified, logged_in = run(scenario)

    assert user.email_verified is False
    assert verified.email_verified is True
    assert logged_in.last_login_at is not None
