"""
Use case: Change a transporter's login or password.

Input: UpdateTransporterCommand (user_id, login, password)
Output: UserResult
Side effects: Persists the new login and the hash of the new password.
    Specialty, role and status are never changed here.
Failure cases:
    - EntityNotFound.
    - NotATransporter: the id names an admin.
    - ValidationError: login format, a login taken by another user, or
      the plain-text password policy.
"""

import logging

from parcelcarrier.application.delivery.dtos import (
    UpdateTransporterCommand,
    UserResult,
    to_user_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.documents import user_to_document
from parcelcarrier.domain.delivery.entities import Transporter, utcnow
from parcelcarrier.domain.delivery.errors import (
    EntityNotFound,
    NotATransporter,
    ValidationError,
)
from parcelcarrier.domain.delivery.ports import PasswordHasher, UserRepository
from parcelcarrier.domain.delivery.validation import (
    USER,
    collect_password_violations,
    collect_user_violations,
)

logger = logging.getLogger(__name__)


class UpdateTransporterUseCase:
    """Orchestrates credential changes for a transporter account."""

    def __init__(self, user_repo: UserRepository, hasher: PasswordHasher) -> None:
        self._user_repo = user_repo
        self._hasher = hasher

    def execute(self, command: UpdateTransporterCommand) -> UserResult:
        """Apply the submitted credential changes.

        Raises:
            EntityNotFound: If the user does not exist.
            NotATransporter: If the user is an admin.
            ValidationError: If any rule is broken.
        """
        current = self._user_repo.find_by_id(command.user_id)
        if current is None:
            raise EntityNotFound("user", command.user_id)
        if not isinstance(current, Transporter):
            raise NotATransporter(current.id)

        login_changed = command.login is not None and command.login != current.login
        if not login_changed and command.password is None:
            return to_user_result(current)

        violations = []
        if command.password is not None:
            violations += collect_password_violations(command.password)
        if login_changed:
            document = {**user_to_document(current), doc.LOGIN: command.login}
            violations += [
                v
                for v in collect_user_violations(
                    document, self._user_repo.exists_by_login
                )
                if v.field == doc.LOGIN
            ]
        if violations:
            logger.warning(
                "Rejected update of transporter=%s: %d violation(s)",
                current.id,
                len(violations),
            )
            raise ValidationError(USER, violations)

        changes: dict = {"updated_at": utcnow()}
        if login_changed:
            changes["login"] = command.login
        if command.password is not None:
            changes["password"] = self._hasher.hash(command.password)

        updated = self._user_repo.update(current.id, changes)
        # Field names only; the values include a password hash.
        logger.info(
            "Updated transporter=%s fields=%s",
            current.id,
            sorted(k for k in changes if k != "updated_at"),
        )
        return to_user_result(updated)
