from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from ...core.errors import BadRequestError, ConflictError, NotFoundError, enum_error
from ...domain.claims import ClaimAction, ClaimSubject
from ...domain.users import (
    DELETE_CONFIRMATION,
    User,
    UserCreate,
    UserDeleteRequest,
    UserUpdate,
)
from ...repositories.users import DuplicateEmailError, UsersRepository
from ...services.policies import authorize, serialize_user
from ...services.standard_response import (
    StandardParams,
    StandardResponseRoute,
    paginated_response,
    standard_response,
)
from ..dependencies import get_current_user, get_users_repository, require_claim

router = APIRouter(prefix="/user", tags=["users"], route_class=StandardResponseRoute)

USER_NOT_FOUND = "User not found"


async def _load_target(
    id_or_email: str,
    action: ClaimAction,
    current_user: User,
    users_repo: UsersRepository,
) -> User:
    target = await users_repo.get_by_id_or_email(id_or_email)
    if target is None:
        # Callers limited to their own record learn nothing about other ids.
        authorize(current_user, action, ClaimSubject.USER)
        raise NotFoundError(USER_NOT_FOUND)
    authorize(current_user, action, ClaimSubject.USER, owner_id=target.id)
    return target


@router.get("")
async def list_users(
    current_user: User = Depends(require_claim(ClaimAction.LIST, ClaimSubject.USER)),
    params: StandardParams = Depends(
        paginated_response(default_page_size=10, min_page_size=1, max_page_size=100)
    ),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> list[dict[str, Any]]:
    users = await users_repo.list(offset=params.offset, limit=params.limit)
    params.set_pagination_info(count=await users_repo.count())
    params.set_message("Users retrieved")
    return [serialize_user(user, current_user) for user in users]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    params: StandardParams = Depends(standard_response()),
    current_user: User = Depends(require_claim(ClaimAction.CREATE, ClaimSubject.USER)),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> dict[str, Any]:
    try:
        user = await users_repo.create(payload)
    except DuplicateEmailError as exc:
        raise ConflictError("User with email already exists") from exc
    params.set_message("User created")
    return serialize_user(user, current_user)


@router.get("/{id_or_email}")
async def read_user(
    id_or_email: str,
    params: StandardParams = Depends(standard_response()),
    current_user: User = Depends(get_current_user),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> dict[str, Any]:
    user = await _load_target(id_or_email, ClaimAction.READ, current_user, users_repo)
    params.set_message("User retrieved")
    return serialize_user(user, current_user)


@router.patch("/{id_or_email}")
async def update_user(
    id_or_email: str,
    payload: UserUpdate,
    params: StandardParams = Depends(standard_response()),
    current_user: User = Depends(get_current_user),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> dict[str, Any]:
    target = await _load_target(id_or_email, ClaimAction.UPDATE, current_user, users_repo)
    if payload.model_fields_set & {"roles", "claims"}:
        # Editing one's own profile never extends to one's own permissions.
        authorize(current_user, ClaimAction.UPDATE, ClaimSubject.USER)
    user = await users_repo.update(target.id, payload)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    params.set_message("User updated")
    return serialize_user(user, current_user)


@router.delete("/{id_or_email}")
async def delete_user(
    id_or_email: str,
    payload: UserDeleteRequest | None = Body(default=None),
    params: StandardParams = Depends(standard_response()),
    current_user: User = Depends(require_claim(ClaimAction.DELETE, ClaimSubject.USER)),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> dict[str, Any]:
    if payload is None or payload.confirmation_string != DELETE_CONFIRMATION:
        raise BadRequestError(
            "Validation failed",
            errors=[enum_error("confirmationString", [DELETE_CONFIRMATION])],
        )
    target = await users_repo.get_by_id_or_email(id_or_email)
    if target is None:
        raise NotFoundError(USER_NOT_FOUND)
    await users_repo.delete(target.id)
    params.set_message("User deleted")
    return serialize_user(target, current_user)
