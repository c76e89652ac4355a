from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import hash_password
from ..domain.claims import Claim, Role
from ..domain.users import User, UserCreate, UserUpdate
from ..models.user import UserModel


class DuplicateEmailError(ValueError):
    """Raised when an email address is already registered."""


class TokenPurpose(str, Enum):
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


def _parse_id_or_email(id_or_email: str) -> UUID | None:
    try:
        return UUID(id_or_email)
    except ValueError:
        return None


class UsersRepository(Protocol):
    """Persistence interface for user records."""

    async def create(self, payload: UserCreate) -> User: ...

    async def get(self, user_id: UUID) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_id_or_email(self, id_or_email: str) -> User | None: ...

    async def list(self, *, offset: int = 0, limit: int | None = None) -> list[User]: ...

    async def count(self) -> int: ...

    async def update(self, user_id: UUID, payload: UserUpdate) -> User | None: ...

    async def delete(self, user_id: UUID) -> bool: ...

    async def get_password_hash(self, user_id: UUID) -> str | None: ...

    async def set_password(self, user_id: UUID, password: str) -> None: ...

    async def set_email_verified(self, user_id: UUID) -> User | None: ...

    async def store_token(
        self,
        user_id: UUID,
        purpose: TokenPurpose,
        token_hash: str,
        expires_at: datetime,
    ) -> None: ...

    async def find_by_token(self, purpose: TokenPurpose, token_hash: str) -> User | None: ...

    async def clear_token(self, user_id: UUID, purpose: TokenPurpose) -> None: ...

    async def touch_last_login(self, user_id: UUID) -> User | None: ...


class InMemoryUsersRepository:
    """Dictionary-backed repository for tests and local development."""

    def __init__(self) -> None:
        self._users: dict[UUID, User] = {}
        self._email_index: dict[str, UUID] = {}
        self._password_hashes: dict[UUID, str] = {}
        self._tokens: dict[tuple[UUID, TokenPurpose], tuple[str, datetime]] = {}

    async def create(self, payload: UserCreate) -> User:
        normalized_email = payload.email.lower()
        if normalized_email in self._email_index:
            raise DuplicateEmailError("user with email already exists")
        data = payload.model_dump(exclude={"password"})
        data["email"] = normalized_email
        user = User(**data)
        self._users[user.id] = user
        self._email_index[normalized_email] = user.id
        self._password_hashes[user.id] = hash_password(payload.password)
        return user

    async def get(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        user_id = self._email_index.get(email.lower())
        if not user_id:
            return None
        return self._users.get(user_id)

    async def get_by_id_or_email(self, id_or_email: str) -> User | None:
        user_id = _parse_id_or_email(id_or_email)
        if user_id is not None:
            return await self.get(user_id)
        return await self.get_by_email(id_or_email)

    async def list(self, *, offset: int = 0, limit: int | None = None) -> list[User]:
        users = sorted(self._users.values(), key=lambda user: (user.created_at, str(user.id)))
        end = None if limit is None else offset + limit
        return users[offset:end]

    async def count(self) -> int:
        return len(self._users)

    async def update(self, user_id: UUID, payload: UserUpdate) -> User | None:
        user = self._users.get(user_id)
        if not user:
            return None
        changes = payload.model_dump(exclude_unset=True)
        changes["updated_at"] = datetime.utcnow()
        updated = user.model_copy(update=changes)
        # model_copy skips validation, so re-validate nested claims/roles.
        updated = User.model_validate(updated.model_dump())
        self._users[user_id] = updated
        return updated

    async def delete(self, user_id: UUID) -> bool:
        user = self._users.pop(user_id, None)
        if user is None:
            return False
        self._email_index.pop(user.email.lower(), None)
        self._password_hashes.pop(user_id, None)
        for purpose in TokenPurpose:
            self._tokens.pop((user_id, purpose), None)
        return True

    async def get_password_hash(self, user_id: UUID) -> str | None:
        return self._password_hashes.get(user_id)

    async def set_password(self, user_id: UUID, password: str) -> None:
        if user_id in self._users:
            self._password_hashes[user_id] = hash_password(password)
            self._touch(user_id)

    async def set_email_verified(self, user_id: UUID) -> User | None:
        if user_id not in self._users:
            return None
        return self._touch(user_id, email_verified=True)

    async def store_token(
        self,
        user_id: UUID,
        purpose: TokenPurpose,
        token_hash: str,
        expires_at: datetime,
    ) -> None:
        self._tokens[(user_id, purpose)] = (token_hash, expires_at)

    async def find_by_token(self, purpose: TokenPurpose, token_hash: str) -> User | None:
        now = datetime.utcnow()
        for (user_id, stored_purpose), (stored_hash, expires_at) in self._tokens.items():
            if stored_purpose == purpose and stored_hash == token_hash and expires_at > now:
                return self._users.get(user_id)
        return None

    async def clear_token(self, user_id: UUID, purpose: TokenPurpose) -> None:
        self._tokens.pop((user_id, purpose), None)

    async def touch_last_login(self, user_id: UUID) -> User | None:
        if user_id not in self._users:
            return None
        return self._touch(user_id, last_login_at=datetime.utcnow())

    def _touch(self, user_id: UUID, **changes: object) -> User:
        changes["updated_at"] = datetime.utcnow()
        updated = self._users[user_id].model_copy(update=changes)
        self._users[user_id] = updated
        return updated


class SqlAlchemyUsersRepository:
    """SQLAlchemy-backed repository for user persistence."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payload: UserCreate) -> User:
        model = UserModel(
            email=payload.email.lower(),
            first_name=payload.first_name,
            last_name=payload.last_name,
            password_hash=hash_password(payload.password),
            roles=[role.value for role in payload.roles],
            claims=[claim.model_dump(mode="json") for claim in payload.claims],
            email_verified=payload.email_verified,
        )
        self._session.add(model)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise DuplicateEmailError("user with email already exists") from exc
        await self._session.refresh(model)
        return self._to_domain(model)

    async def get(self, user_id: UUID) -> User | None:
        model = await self._get_model(user_id)
        if not model:
            return None
        return self._to_domain(model)

    async def get_by_email(self, email: str) -> User | None:
        result = await self._session.execute(
            select(UserModel).where(UserModel.email == email.lower())
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        return self._to_domain(model)

    async def get_by_id_or_email(self, id_or_email: str) -> User | None:
        user_id = _parse_id_or_email(id_or_email)
        if user_id is not None:
            return await self.get(user_id)
        return await self.get_by_email(id_or_email)

    async def list(self, *, offset: int = 0, limit: int | None = None) -> list[User]:
        stmt = select(UserModel).order_by(UserModel.created_at, UserModel.id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(UserModel))
        return int(result.scalar_one())

    async def update(self, user_id: UUID, payload: UserUpdate) -> User | None:
        model = await self._get_model(user_id)
        if not model:
            return None
        changes = payload.model_dump(mode="json", exclude_unset=True)
        for key, value in changes.items():
            setattr(model, key, value)
        await self._session.commit()
        await self._session.refresh(model)
        return self._to_domain(model)

    async def delete(self, user_id: UUID) -> bool:
        model = await self._get_model(user_id)
        if not model:
            return False
        await self._session.delete(model)
        await self._session.commit()
        return True

    async def get_password_hash(self, user_id: UUID) -> str | None:
        model = await self._get_model(user_id)
        return model.password_hash if model else None

    async def set_password(self, user_id: UUID, password: str) -> None:
        model = await self._get_model(user_id)
        if not model:
            return
        model.password_hash = hash_password(password)
        await self._session.commit()

    async def set_email_verified(self, user_id: UUID) -> User | None:
        model = await self._get_model(user_id)
        if not model:
            return None
        model.email_verified = True
        await self._session.commit()
        await self._session.refresh(model)
        return self._to_domain(model)

    async def store_token(
        self,
        user_id: UUID,
        purpose: TokenPurpose,
        token_hash: str,
        expires_at: datetime,
    ) -> None:
        model = await self._get_model(user_id)
        if not model:
            return
        if purpose is TokenPurpose.VERIFY_EMAIL:
            model.verification_token_hash = token_hash
            model.verification_token_expires_at = expires_at
        else:
            model.reset_token_hash = token_hash
            model.reset_token_expires_at = expires_at
        await self._session.commit()

    async def find_by_token(self, purpose: TokenPurpose, token_hash: str) -> User | None:
        if purpose is TokenPurpose.VERIFY_EMAIL:
            hash_col, expiry_col = UserModel.verification_token_hash, UserModel.verification_token_expires_at
        else:
            hash_col, expiry_col = UserModel.reset_token_hash, UserModel.reset_token_expires_at
        result = await self._session.execute(
            select(UserModel).where(hash_col == token_hash, expiry_col > datetime.utcnow())
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        return self._to_domain(model)

    async def clear_token(self, user_id: UUID, purpose: TokenPurpose) -> None:
        model = await self._get_model(user_id)
        if not model:
            return
        if purpose is TokenPurpose.VERIFY_EMAIL:
            model.verification_token_hash = None
            model.verification_token_expires_at = None
        else:
            model.reset_token_hash = None
            model.reset_token_expires_at = None
        await self._session.commit()

    async def touch_last_login(self, user_id: UUID) -> User | None:
        model = await self._get_model(user_id)
        if not model:
            return None
        model.last_login_at = datetime.utcnow()
        await self._session.commit()
        await self._session.refresh(model)
        return self._to_domain(model)

    async def _get_model(self, user_id: UUID) -> UserModel | None:
        result = await self._session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_domain(model: UserModel) -> User:
        return User(
            id=model.id,
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            roles=[Role(role) for role in model.roles or []],
            claims=[Claim.model_validate(claim) for claim in model.claims or []],
            email_verified=model.email_verified,
            created_at=model.created_at,
            updated_at=model.updated_at,
            last_login_at=model.last_login_at,
        )
