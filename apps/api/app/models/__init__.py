"""SQLAlchemy ORM models used by the API layer."""

from .user import UserModel

__all__ = [
    "UserModel",
]
