"""Claims carried by callers and checked by the policy service."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ClaimAction(str, Enum):
    LIST = "list"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class ClaimSubject(str, Enum):
    USER = "user"
    ALL = "all"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Claim(BaseModel):
    """Grants ``action`` on ``subject``, optionally limited to the caller's own records."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    action: ClaimAction
    subject: ClaimSubject
    own_only: bool = Field(
        default=False,
        description="Restrict the claim to resources owned by the caller",
    )

    def covers(self, action: ClaimAction, subject: ClaimSubject) -> bool:
        action_ok = self.action in (action, ClaimAction.MANAGE)
        subject_ok = self.subject in (subject, ClaimSubject.ALL)
        return action_ok and subject_ok


ROLE_CLAIMS: dict[Role, tuple[Claim, ...]] = {
    Role.USER: (
        Claim(action=ClaimAction.READ, subject=ClaimSubject.USER, own_only=True),
        Claim(action=ClaimAction.UPDATE, subject=ClaimSubject.USER, own_only=True),
    ),
    Role.ADMIN: (Claim(action=ClaimAction.MANAGE, subject=ClaimSubject.ALL),),
}
