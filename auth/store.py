"""
auth/store.py -- SQLAlchemy Core persistence layer for identities and roles.

Pattern: Repository + Data Mapper (same as shop/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and
dependency code never touches SQL directly.

Schema: users, roles, and the user_role join table (many-to-many). The three
role rows are seeded on startup so every store is usable immediately.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import AppRole, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "roles",
    _metadata,
    Column("role_id", Integer, primary_key=True, autoincrement=True),
    Column("role_name", String(20), nullable=False, unique=True),
)

_users = Table(
    "users",
    _metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(20), nullable=False, unique=True),
    Column("email", String(50), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("created_at", String(32), nullable=False),
    sqlite_autoincrement=True,
)

_user_role = Table(
    "user_role",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.user_id"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.role_id"), primary_key=True),
)


# Public sort keys for user listings -> columns.
_SORTABLE_USERS: dict[str, Column] = {
    "user_id": _users.c.user_id,
    "username": _users.c.username,
    "email": _users.c.email,
    "created_at": _users.c.created_at,
}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities and their role assignments.

    Usage:
        store = UserStore()
        store.create_user(User(username="admin", email="a@x.io", hashed_password=..., roles={"ROLE_ADMIN"}))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_roles()

    def _ensure_roles(self) -> None:
        """Seed the fixed role rows. Idempotent -- safe to call on every startup."""
        with self.engine.begin() as conn:
            existing = set(conn.execute(select(_roles.c.role_name)).scalars())
            for role in AppRole:
                if role.value not in existing:
                    conn.execute(_roles.insert().values(role_name=role.value))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> int:
        """Insert a user with its role set and return the assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists. Unknown role names raise ValueError before anything is written.
        """
        roles = user.roles or {AppRole.USER.value}
        with self.engine.begin() as conn:
            role_ids = self._role_ids(conn, roles)
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    password=user.hashed_password,
                    created_at=_now_iso(),
                )
            )
            user_id = result.inserted_primary_key[0]
            for role_id in role_ids:
                conn.execute(_user_role.insert().values(user_id=user_id, role_id=role_id))
        return user_id

    def _role_ids(self, conn, role_names) -> list[int]:
        rows = conn.execute(select(_roles.c.role_id, _roles.c.role_name).where(_roles.c.role_name.in_(role_names)))
        found = {r.role_name: r.role_id for r in rows}
        missing = set(role_names) - set(found)
        if missing:
            raise ValueError(f"Unknown roles: {sorted(missing)}")
        return [found[name] for name in sorted(found)]

    def _roles_for(self, conn, user_ids: list[int]) -> dict[int, set[str]]:
        if not user_ids:
            return {}
        rows = conn.execute(
            select(_user_role.c.user_id, _roles.c.role_name)
            .join(_roles, _roles.c.role_id == _user_role.c.role_id)
            .where(_user_role.c.user_id.in_(user_ids))
        )
        result: dict[int, set[str]] = {uid: set() for uid in user_ids}
        for row in rows:
            result[row.user_id].add(row.role_name)
        return result

    def _get_one(self, where) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(where)).fetchone()
            if row is None:
                return None
            roles = self._roles_for(conn, [row.user_id])[row.user_id]
        return _row_to_user(row, roles)

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        return self._get_one(_users.c.username == username)

    def get_by_email(self, email: str) -> User | None:
        return self._get_one(_users.c.email == email)

    def get_by_id(self, user_id: int) -> User | None:
        return self._get_one(_users.c.user_id == user_id)

    def exists_by_username(self, username: str) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(select(_users.c.user_id).where(_users.c.username == username)).first() is not None

    def exists_by_email(self, email: str) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(select(_users.c.user_id).where(_users.c.email == email)).first() is not None

    def page_users(
        self,
        offset: int,
        limit: int,
        sort_by: str = "user_id",
        descending: bool = False,
        role: str | None = None,
    ) -> tuple[list[User], int]:
        """Return (users, total), optionally filtered by role name.

        Raises ValueError when sort_by is not a sortable user column.
        """
        column = _SORTABLE_USERS.get(sort_by)
        if column is None:
            raise ValueError(f"Cannot sort users by {sort_by!r}. Allowed: {', '.join(sorted(_SORTABLE_USERS))}")
        order = column.desc() if descending else column.asc()
        base = select(_users)
        count = select(func.count()).select_from(_users)
        if role is not None:
            holders = (
                select(_user_role.c.user_id)
                .join(_roles, _roles.c.role_id == _user_role.c.role_id)
                .where(_roles.c.role_name == role)
            )
            base = base.where(_users.c.user_id.in_(holders))
            count = count.where(_users.c.user_id.in_(holders))
        with self.engine.connect() as conn:
            total = conn.execute(count).scalar() or 0
            rows = conn.execute(base.order_by(order, _users.c.user_id).offset(offset).limit(limit)).fetchall()
            roles = self._roles_for(conn, [r.user_id for r in rows])
        return [_row_to_user(r, roles[r.user_id]) for r in rows], total

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user and its role links. Returns False if not found."""
        with self.engine.begin() as conn:
            conn.execute(_user_role.delete().where(_user_role.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.user_id == user_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, roles: set[str]) -> User:
    return User(
        id=row.user_id,
        username=row.username,
        email=row.email,
        hashed_password=row.password,
        roles=set(roles),
        created_at=row.created_at,
    )
