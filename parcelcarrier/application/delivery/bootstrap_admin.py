"""
Use case: Ensure the administrator account exists.

Input: BootstrapAdminCommand (login, password)
Output: BootstrapAdminResult
Side effects: Creates the admin on first run. On later runs re-activates
    it and resets its password if the configured one no longer matches.
    Running it twice with the same input changes nothing the second time.
Failure cases: ValidationError (bad login or password, or the login
    belongs to a transporter).
"""

import logging

from parcelcarrier.application.delivery.create_user import CreateUserUseCase
from parcelcarrier.application.delivery.dtos import (
    BootstrapAdminCommand,
    BootstrapAdminResult,
    CreateUserCommand,
    to_user_result,
)
from parcelcarrier.domain.delivery.entities import Admin, Role, utcnow
from parcelcarrier.domain.delivery.errors import ValidationError
from parcelcarrier.domain.delivery.ports import PasswordHasher, UserRepository
from parcelcarrier.domain.delivery.validation import (
    USER,
    collect_password_violations,
    duplicate_login_error,
)

logger = logging.getLogger(__name__)


class BootstrapAdminUseCase:
    """Idempotent creation of the administrator account."""

    def __init__(self, user_repo: UserRepository, hasher: PasswordHasher) -> None:
        self._user_repo = user_repo
        self._hasher = hasher

    def execute(self, command: BootstrapAdminCommand) -> BootstrapAdminResult:
        existing = self._user_repo.find_by_login(command.login)
        if existing is None:
            created = CreateUserUseCase(self._user_repo, self._hasher).execute(
                CreateUserCommand(
                    login=command.login,
                    password=command.password,
                    role=Role.ADMIN,
                )
            )
            logger.info("Bootstrapped admin login=%s", command.login)
            return BootstrapAdminResult(user=created, created=True, changed=False)

        if not isinstance(existing, Admin):
            logger.error("Bootstrap login=%s belongs to a transporter", command.login)
            raise duplicate_login_error(command.login)

        changes: dict = {}
        if not existing.active:
            changes["active"] = True
        if not self._hasher.verify(command.password, existing.password):
            violations = collect_password_violations(command.password)
            if violations:
                raise ValidationError(USER, violations)
            changes["password"] = self._hasher.hash(command.password)

        if not changes:
            logger.info("Admin login=%s already up to date", command.login)
            return BootstrapAdminResult(
                user=to_user_result(existing), created=False, changed=False
            )

        changes["updated_at"] = utcnow()
        updated = self._user_repo.update(existing.id, changes)
        # Field names only; the values include a password hash.
        logger.info("Admin login=%s updated: %s", command.login, sorted(changes))
        return BootstrapAdminResult(
            user=to_user_result(updated), created=False, changed=True
        )
