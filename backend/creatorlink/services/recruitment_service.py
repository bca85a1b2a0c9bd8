# backend/creatorlink/services/recruitment_service.py
"""
Recruitment Service: negotiation phase and connection status of a conversation.

Both fields are set explicitly by participants. Changing them never
creates messages; offers are sent separately through the message pipeline.

Two transition policies are supported for recruitment status:
- permissive: any participant may set any value from any state
- strict: discussing -> offer_sent -> (accepted | declined) -> completed
Setting the current value again is a no-op under both.
"""

from dataclasses import dataclass
import logging
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from ..core.config import RecruitmentStatusMode, settings
from ..core.conversation_lock import conversation_lock
from ..core.enums import ConnectionStatus, RecruitmentStatus
from ..core.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.conversation import Conversation
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

STRICT_TRANSITIONS: Dict[RecruitmentStatus, FrozenSet[RecruitmentStatus]] = {
    RecruitmentStatus.DISCUSSING: frozenset({RecruitmentStatus.OFFER_SENT}),
    RecruitmentStatus.OFFER_SENT: frozenset(
        {RecruitmentStatus.ACCEPTED, RecruitmentStatus.DECLINED}
    ),
    RecruitmentStatus.ACCEPTED: frozenset({RecruitmentStatus.COMPLETED}),
    RecruitmentStatus.DECLINED: frozenset({RecruitmentStatus.COMPLETED}),
    RecruitmentStatus.COMPLETED: frozenset(),
}


def is_transition_allowed(
    current: RecruitmentStatus, target: RecruitmentStatus, mode: RecruitmentStatusMode
) -> bool:
    if current == target or mode == "permissive":
        return True
    return target in STRICT_TRANSITIONS[current]


@dataclass
class StatusUpdateResult:
    """Outcome of a status change, with fan-out context."""

    conversation: Conversation
    changed: bool
    updated_by: str
    participant_ids: List[str]

    @property
    def conversation_id(self) -> str:
        return str(self.conversation.id)


class RecruitmentService(BaseService):
    """Sets recruitment and connection status on behalf of a participant."""

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        mode: Optional[RecruitmentStatusMode] = None,
    ):
        super().__init__(db)
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.mode: RecruitmentStatusMode = mode or settings.recruitment_status_mode

    @BaseService.measure_operation("update_status")
    def update_status(
        self,
        requester_id: str,
        conversation_id: str,
        connection_status: Optional[ConnectionStatus] = None,
        recruitment_status: Optional[RecruitmentStatus] = None,
    ) -> StatusUpdateResult:
        """
        Apply a connection and/or recruitment status change atomically.

        Raises:
            ValidationException: neither field supplied
            NotFoundException: conversation does not exist
            ForbiddenException: requester is not a participant
            InvalidStateException: strict mode rejects the recruitment transition
        """
        if connection_status is None and recruitment_status is None:
            raise ValidationException(
                "Provide status and/or recruitment_status", code="NO_STATUS_SUPPLIED"
            )

        with conversation_lock(conversation_id):
            with self.transaction():
                conversation = self.conversation_repository.get_for_update(conversation_id)
                if conversation is None:
                    raise NotFoundException("Conversation not found", code="CONVERSATION_NOT_FOUND")
                if not conversation.is_participant(requester_id):
                    raise ForbiddenException(
                        "You are not a participant in this conversation", code="NOT_PARTICIPANT"
                    )

                changed = False
                if recruitment_status is not None:
                    current = RecruitmentStatus(conversation.recruitment_status)
                    if not is_transition_allowed(current, recruitment_status, self.mode):
                        raise InvalidStateException(
                            f"Cannot move recruitment status from {current.value} "
                            f"to {recruitment_status.value}",
                            code="INVALID_RECRUITMENT_TRANSITION",
                            details={"from": current.value, "to": recruitment_status.value},
                        )
                    if current != recruitment_status:
                        conversation.recruitment_status = recruitment_status
                        changed = True

                if connection_status is not None and conversation.connection_status != connection_status:
                    conversation.connection_status = connection_status
                    changed = True

                if changed:
                    now = utc_now()
                    last_activity = ensure_utc(conversation.last_activity_at)
                    conversation.last_activity_at = max(now, last_activity) if last_activity else now
                    self.conversation_repository.flush()
                participant_ids = list(conversation.participant_ids)

        if changed:
            self.logger.info(
                "Conversation status updated",
                extra={
                    "conversation_id": conversation_id,
                    "connection_status": conversation.connection_status.value,
                    "recruitment_status": conversation.recruitment_status.value,
                },
            )
        return StatusUpdateResult(
            conversation=conversation,
            changed=changed,
            updated_by=requester_id,
            participant_ids=participant_ids,
        )

    def set_recruitment_status(
        self, requester_id: str, conversation_id: str, new_status: RecruitmentStatus
    ) -> StatusUpdateResult:
        return self.update_status(requester_id, conversation_id, recruitment_status=new_status)

    def set_connection_status(
        self, requester_id: str, conversation_id: str, new_status: ConnectionStatus
    ) -> StatusUpdateResult:
        return self.update_status(requester_id, conversation_id, connection_status=new_status)
