"""
Use case: List transporters with filters.

Input: ListTransportersQuery (specialty, status, active, offset, limit)
Output: TransporterList (earliest registered first)
Side effects: None.
Failure cases: ValidationError (unknown specialty or status, bad paging).
"""

import logging

from parcelcarrier.application.delivery.dtos import (
    ListTransportersQuery,
    TransporterList,
    to_user_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.entities import Role, Specialty, TransporterStatus
from parcelcarrier.domain.delivery.ports import UserQuery, UserRepository
from parcelcarrier.domain.delivery.validation import (
    USER,
    parse_enum_filter,
    validate_paging,
)

logger = logging.getLogger(__name__)


class ListTransportersUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, query: ListTransportersQuery) -> TransporterList:
        validate_paging(USER, query.offset, query.limit)
        criteria = UserQuery(
            role=Role.TRANSPORTER,
            specialty=parse_enum_filter(USER, doc.SPECIALTY, Specialty, query.specialty),
            status=parse_enum_filter(USER, doc.STATUS, TransporterStatus, query.status),
            active=query.active,
            offset=query.offset,
            limit=query.limit,
        )
        logger.debug("Listing transporters with %s", criteria)

        transporters = self._user_repo.find_many(criteria)
        return TransporterList(
            items=tuple(to_user_result(t) for t in transporters),
            offset=query.offset,
            limit=query.limit,
        )
