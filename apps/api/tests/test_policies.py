"""Tests for claims evaluation and per-caller user serialization."""

from uuid import uuid4

import pytest
from hypothesis import given, settings, strategies as st

from apps.api.app.core.errors import ForbiddenError
from apps.api.app.domain.claims import Claim, ClaimAction, ClaimSubject, Role
from apps.api.app.domain.users import User
from apps.api.app.services.policies import (
    authorize,
    can,
    effective_claims,
    serialize_user,
)


def _user(**kwargs) -> User:
    defaults = {"email": f"{uuid4().hex}@example.com", "first_name": "Ada"}
    defaults.update(kwargs)
    return User(**defaults)


action_strategy = st.sampled_from([action for action in ClaimAction if action is not ClaimAction.MANAGE])


@settings(max_examples=50)
@given(action=action_strategy)
def test_admin_role_can_do_anything_to_users(action):
    admin = _user(roles=[Role.ADMIN])

    assert can(admin, action, ClaimSubject.USER)


@settings(max_examples=50)
@given(action=action_strategy)
def test_own_only_claims_require_matching_owner(action):
    user = _user(claims=[Claim(action=action, subject=ClaimSubject.USER, own_only=True)], roles=[])

    assert can(user, action, ClaimSubject.USER, owner_id=user.id)
    assert not can(user, action, ClaimSubject.USER, owner_id=uuid4())
    assert not can(user, action, ClaimSubject.USER)


def test_default_user_role_only_reads_and_updates_itself():
    user = _user()
    other = uuid4()

    assert can(user, ClaimAction.READ, ClaimSubject.USER, owner_id=user.id)
    assert can(user, ClaimAction.UPDATE, ClaimSubject.USER, owner_id=user.id)
    assert not can(user, ClaimAction.READ, ClaimSubject.USER, owner_id=other)
    assert not can(user, ClaimAction.LIST, ClaimSubject.USER)
    assert not can(user, ClaimAction.DELETE, ClaimSubject.USER, owner_id=user.id)


def test_explicit_claims_extend_role_defaults():
    user = _user(claims=[Claim(action=ClaimAction.LIST, subject=ClaimSubject.USER)])

    assert can(user, ClaimAction.LIST, ClaimSubject.USER)
    assert len(effective_claims(user)) == 3


def test_authorize_names_the_missing_claim():
    with pytest.raises(ForbiddenError) as exc_info:
        authorize(_user(), ClaimAction.DELETE, ClaimSubject.USER)

    assert exc_info.value.message == "Missing 'delete user' claim"
    assert exc_info.value.status_code == 403


def test_strangers_only_see_public_fields():
    target = _user(last_name="Lovelace")
    stranger = _user()

    rendered = serialize_user(target, stranger)

    assert rendered["email"] == target.email
    assert rendered["lastName"] == "Lovelace"
    for field in ("roles", "claims", "emailVerified", "lastLoginAt", "updatedAt"):
        assert field not in rendered


def test_self_and_readers_see_private_fields():
    target = _user()
    reader = _user(claims=[Claim(action=ClaimAction.READ, subject=ClaimSubject.USER)])

    for caller in (target, reader):
        rendered = serialize_user(target, caller)
        assert rendered["roles"] == ["user"]
        assert rendered["emailVerified"] is False
        assert "password" not in rendered


def test_anonymous_caller_gets_public_view():
    rendered = serialize_user(_user(), None)

    assert set(rendered) == {"id", "email", "firstName", "lastName", "createdAt"}
