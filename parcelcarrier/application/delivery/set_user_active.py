"""
Use case: Deactivate or re-activate a user.

Input: SetUserActiveCommand (user_id, active)
Output: UserResult
Side effects: Persists the flag. Users are never deleted; an inactive
    transporter is skipped by matching but finishes a delivery in progress.
Failure cases: EntityNotFound.
"""

import logging

from parcelcarrier.application.delivery.dtos import (
    SetUserActiveCommand,
    UserResult,
    to_user_result,
)
from parcelcarrier.domain.delivery.entities import Transporter, utcnow
from parcelcarrier.domain.delivery.errors import EntityNotFound
from parcelcarrier.domain.delivery.ports import UserRepository

logger = logging.getLogger(__name__)


class SetUserActiveUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, command: SetUserActiveCommand) -> UserResult:
        user = self._user_repo.find_by_id(command.user_id)
        if user is None:
            raise EntityNotFound("user", command.user_id)
        if user.active == command.active:
            return to_user_result(user)

        busy = isinstance(user, Transporter) and not user.is_available
        if not command.active and busy:
            logger.warning(
                "Deactivating transporter=%s while it is on a delivery", user.id
            )
        updated = self._user_repo.update(
            user.id, {"active": command.active, "updated_at": utcnow()}
        )
        logger.info(
            "User=%s %s", user.id, "activated" if command.active else "deactivated"
        )
        return to_user_result(updated)
