"""Claims-based authorization and per-caller serialization of user records."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from ..core.errors import ForbiddenError
from ..domain.claims import ROLE_CLAIMS, Claim, ClaimAction, ClaimSubject
from ..domain.users import User

PUBLIC_USER_FIELDS = ("id", "email", "first_name", "last_name", "created_at")
PRIVATE_USER_FIELDS = (
    "roles",
    "claims",
    "email_verified",
    "last_login_at",
    "updated_at",
)


def effective_claims(user: User) -> list[Claim]:
    """Role defaults followed by the user's explicit claims, without duplicates."""

    claims: list[Claim] = []
    for role in user.roles:
        for claim in ROLE_CLAIMS.get(role, ()):
            if claim not in claims:
                claims.append(claim)
    for claim in user.claims:
        if claim not in claims:
            claims.append(claim)
    return claims


def _matching(claims: Iterable[Claim], action: ClaimAction, subject: ClaimSubject) -> list[Claim]:
    return [claim for claim in claims if claim.covers(action, subject)]


def can(
    principal: User,
    action: ClaimAction,
    subject: ClaimSubject,
    owner_id: UUID | None = None,
) -> bool:
    """Return whether ``principal`` may perform ``action`` on ``subject``.

    ``owner_id`` identifies who owns the targeted resource; claims limited to
    the caller's own records only apply when it matches the principal.
    """

    for claim in _matching(effective_claims(principal), action, subject):
        if not claim.own_only:
            return True
        if owner_id is not None and owner_id == principal.id:
            return True
    return False


def authorize(
    principal: User,
    action: ClaimAction,
    subject: ClaimSubject,
    owner_id: UUID | None = None,
) -> None:
    if not can(principal, action, subject, owner_id):
        raise ForbiddenError(
            f"Missing '{action.value} {subject.value}' claim",
        )


def serialize_user(user: User, caller: User | None) -> dict[str, Any]:
    """Render ``user`` for ``caller``; secrets are never part of ``User``."""

    fields = list(PUBLIC_USER_FIELDS)
    if caller is not None and (
        caller.id == user.id
        or can(caller, ClaimAction.READ, ClaimSubject.USER)
    ):
        fields.extend(PRIVATE_USER_FIELDS)
    return user.model_dump(mode="json", by_alias=True, include=set(fields))
