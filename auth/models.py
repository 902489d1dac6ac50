"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in shop/models.py -- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/, shop/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AppRole(str, Enum):
    USER = "ROLE_USER"
    SELLER = "ROLE_SELLER"
    ADMIN = "ROLE_ADMIN"


@dataclass
class User:
    """A stored identity (credential store row plus its role set).

    hashed_password is the bcrypt hash; it never leaves the auth layer.
    roles holds role names such as "ROLE_USER".
    """

    username: str
    email: str
    hashed_password: str
    roles: set[str] = field(default_factory=set)
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a single request.

    Built by the authentication filter and passed explicitly to handlers via
    dependencies. Frozen: nothing downstream may alter who the caller is.
    """

    user_id: int
    username: str
    email: str
    roles: frozenset[str]

    def has_any_role(self, roles) -> bool:
        return bool(self.roles.intersection(roles))

    @property
    def is_admin(self) -> bool:
        return AppRole.ADMIN.value in self.roles

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "roles": sorted(self.roles),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Principal":
        return cls(
            user_id=data["user_id"],
            username=data["username"],
            email=data["email"],
            roles=frozenset(data["roles"]),
        )

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(user_id=user.id, username=user.username, email=user.email, roles=frozenset(user.roles))
