"""
Adapter: SQL user repository.

Implements UserRepository port on the ``users`` table.
The conditional update behind the transporter claim is a single
``UPDATE ... WHERE id = :id AND status = :expected`` statement, so the
database decides which of two racing claims wins.
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import exists, select, update
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError

from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.documents import user_from_document
from parcelcarrier.domain.delivery.entities import Transporter, TransporterStatus, User
from parcelcarrier.domain.delivery.errors import ConcurrencyConflict, EntityNotFound
from parcelcarrier.domain.delivery.ports import UserQuery, UserRepository
from parcelcarrier.domain.delivery.validation import duplicate_login_error
from parcelcarrier.infrastructure.delivery.database import as_utc, translate_errors
from parcelcarrier.infrastructure.delivery.schema import users

logger = logging.getLogger(__name__)

# Attributes a stored user may change. Role and specialty are immutable.
_UPDATABLE = ("login", "password", "active", "status", "updated_at")


def _user_to_row(user: User) -> dict[str, Any]:
    is_transporter = isinstance(user, Transporter)
    return {
        "id": user.id,
        "login": user.login,
        "password": user.password,
        "role": user.role.value,
        "active": user.active,
        "specialty": user.specialty.value if is_transporter else None,
        "status": user.status.value if is_transporter else None,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


def _user_from_row(row: Row) -> User:
    return user_from_document(
        {
            doc.ID: row.id,
            doc.LOGIN: row.login,
            doc.PASSWORD: row.password,
            doc.ROLE: row.role,
            doc.ACTIVE: bool(row.active),
            doc.SPECIALTY: row.specialty,
            doc.STATUS: row.status,
            doc.CREATED_AT: as_utc(row.created_at),
            doc.UPDATED_AT: as_utc(row.updated_at),
        }
    )


def _changes_to_values(changes: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(_UPDATABLE)
    if unknown:
        raise ValueError(f"Cannot update user attributes: {sorted(unknown)}")
    values = dict(changes)
    if isinstance(values.get("status"), TransporterStatus):
        values["status"] = values["status"].value
    return values


class SqlUserRepository(UserRepository):
    """SQL implementation of the user repository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def insert(self, user: User) -> None:
        """Persist a new user.

        The unique index on login is the final arbiter when two requests
        create the same login at once.
        """
        try:
            with translate_errors("users.insert"), self._engine.begin() as conn:
                conn.execute(users.insert().values(**_user_to_row(user)))
        except IntegrityError as exc:
            logger.warning("Duplicate login rejected by store: %s", user.login)
            raise duplicate_login_error(user.login) from exc
        logger.debug("Inserted user id=%s role=%s", user.id, user.role.value)

    def find_by_id(self, user_id: str) -> Optional[User]:
        with translate_errors("users.find_by_id"), self._engine.connect() as conn:
            row = conn.execute(select(users).where(users.c.id == user_id)).first()
        return _user_from_row(row) if row else None

    def find_many(self, query: UserQuery) -> list[User]:
        stmt = select(users)
        if query.role is not None:
            stmt = stmt.where(users.c.role == query.role.value)
        if query.specialty is not None:
            stmt = stmt.where(users.c.specialty == query.specialty.value)
        if query.status is not None:
            stmt = stmt.where(users.c.status == query.status.value)
        if query.active is not None:
            stmt = stmt.where(users.c.active == query.active)
        stmt = stmt.order_by(users.c.created_at, users.c.login).offset(query.offset)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        with translate_errors("users.find_many"), self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_user_from_row(r) for r in rows]

    def find_by_login(self, login: str) -> Optional[User]:
        stmt = select(users).where(users.c.login == login)
        with translate_errors("users.find_by_login"), self._engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _user_from_row(row) if row else None

    def exists_by_login(self, login: str) -> bool:
        stmt = select(exists().where(users.c.login == login))
        with translate_errors("users.exists_by_login"), self._engine.connect() as conn:
            return bool(conn.execute(stmt).scalar())

    def update(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        expected_status: Optional[TransporterStatus] = None,
    ) -> User:
        stmt = update(users).where(users.c.id == user_id)
        if expected_status is not None:
            stmt = stmt.where(users.c.status == expected_status.value)
        stmt = stmt.values(**_changes_to_values(changes))

        try:
            with translate_errors("users.update"), self._engine.begin() as conn:
                result = conn.execute(stmt)
                if result.rowcount == 0:
                    current = conn.execute(
                        select(users.c.status).where(users.c.id == user_id)
                    ).first()
                    if current is None:
                        raise EntityNotFound("user", user_id)
                    actual = (
                        TransporterStatus(current.status) if current.status else None
                    )
                    raise ConcurrencyConflict("user", user_id, expected_status, actual)
                row = conn.execute(select(users).where(users.c.id == user_id)).one()
        except IntegrityError as exc:
            # Only the unique login index can reject an update.
            login = changes.get("login")
            logger.warning("Duplicate login rejected by store: %s", login)
            raise duplicate_login_error(login) from exc
        return _user_from_row(row)
