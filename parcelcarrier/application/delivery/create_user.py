"""
Use case: Create a user account.

Input: CreateUserCommand (login, password, role, specialty, active)
Output: UserResult
Side effects: Persists the user with a hashed password. Transporters
    start AVAILABLE.
Failure cases: ValidationError (every broken rule, including a taken
    login and the plain-text password policy).
"""

import logging

from parcelcarrier.application.delivery.dtos import (
    CreateUserCommand,
    UserResult,
    enum_value,
    to_user_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.documents import user_from_document
from parcelcarrier.domain.delivery.entities import Role, TransporterStatus
from parcelcarrier.domain.delivery.errors import ValidationError
from parcelcarrier.domain.delivery.ports import PasswordHasher, UserRepository
from parcelcarrier.domain.delivery.validation import (
    USER,
    collect_password_violations,
    collect_user_violations,
)

logger = logging.getLogger(__name__)


class CreateUserUseCase:
    """Orchestrates account creation.

    Validates the submitted fields and the plain-text password together,
    hashes the password, then stores the account.
    """

    def __init__(self, user_repo: UserRepository, hasher: PasswordHasher) -> None:
        self._user_repo = user_repo
        self._hasher = hasher

    def execute(self, command: CreateUserCommand) -> UserResult:
        """Create the account.

        Args:
            command: Submitted account fields.

        Returns:
            The stored account, without its password.

        Raises:
            ValidationError: If any rule is broken.
        """
        role = enum_value(command.role)
        logger.info("Creating user login=%s role=%s", command.login, role)

        document = {
            doc.LOGIN: command.login,
            doc.ROLE: role,
            doc.ACTIVE: command.active,
            doc.SPECIALTY: enum_value(command.specialty),
        }
        if role == Role.TRANSPORTER.value:
            document[doc.STATUS] = TransporterStatus.AVAILABLE.value

        # The stored-password rules apply to the hash, checked after hashing.
        violations = collect_password_violations(command.password)
        violations += [
            v
            for v in collect_user_violations(
                {**document, doc.PASSWORD: "unset"}, self._user_repo.exists_by_login
            )
            if v.field != doc.PASSWORD
        ]
        if violations:
            logger.warning(
                "Rejected user login=%s: %d violation(s)", command.login, len(violations)
            )
            raise ValidationError(USER, violations)

        document[doc.PASSWORD] = self._hasher.hash(command.password)
        user = user_from_document(document)
        self._user_repo.insert(user)

        logger.info("Created user id=%s login=%s", user.id, user.login)
        return to_user_result(user)
