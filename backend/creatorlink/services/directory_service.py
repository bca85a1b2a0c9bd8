# backend/creatorlink/services/directory_service.py
"""
Directory Service: read-only view of identities and campaigns.

User registration, approval and campaign CRUD live outside the messaging
core. This service exposes just the lookups the core consumes.
"""

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.auth import CredentialVerifier
from ..core.enums import RoleName, StandingStatus
from ..core.exceptions import UnauthorizedException
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityRecord:
    id: str
    role: RoleName
    display_label: str
    standing_status: StandingStatus

    @property
    def is_approved(self) -> bool:
        return self.standing_status == StandingStatus.APPROVED


@dataclass(frozen=True)
class CampaignRecord:
    id: str
    owner_id: str
    name: str
    applied_creator_ids: List[str] = field(default_factory=list)


def identity_from_user(user: User) -> IdentityRecord:
    return IdentityRecord(
        id=str(user.id),
        role=RoleName(user.role),
        display_label=user.display_label,
        standing_status=StandingStatus(user.status),
    )


class DirectoryService(BaseService):
    """Identity and campaign lookups for the messaging core."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.campaign_repository = RepositoryFactory.create_campaign_repository(db)

    @BaseService.measure_operation("get_identity")
    def get_identity(self, identity_id: str) -> Optional[IdentityRecord]:
        user = self.user_repository.get_by_id(identity_id, load_relationships=False)
        if user is None:
            return None
        return identity_from_user(user)

    def get_identities(self, identity_ids: Sequence[str]) -> Dict[str, IdentityRecord]:
        users = self.user_repository.get_many_by_ids(identity_ids)
        return {user_id: identity_from_user(user) for user_id, user in users.items()}

    @BaseService.measure_operation("get_campaign")
    def get_campaign(self, campaign_id: str) -> Optional[CampaignRecord]:
        campaign = self.campaign_repository.get_by_id(campaign_id, load_relationships=False)
        if campaign is None:
            return None
        return CampaignRecord(
            id=str(campaign.id),
            owner_id=str(campaign.brand_id),
            name=str(campaign.name),
            applied_creator_ids=self.campaign_repository.get_applied_creator_ids(campaign_id),
        )

    @BaseService.measure_operation("authenticate")
    def authenticate(
        self, verifier: Optional[CredentialVerifier], token: Optional[str]
    ) -> IdentityRecord:
        """
        Resolve presented credentials to a known identity.

        Raises:
            UnauthorizedException: no verifier, no token, rejected token,
                or a token for an identity that no longer exists
        """
        if verifier is None or not token:
            raise UnauthorizedException("Authentication required", code="NOT_AUTHENTICATED")
        identity_id = verifier.verify(token)
        if not identity_id:
            raise UnauthorizedException("Invalid credentials", code="INVALID_CREDENTIALS")
        identity = self.get_identity(identity_id)
        if identity is None:
            raise UnauthorizedException("Unknown identity", code="UNKNOWN_IDENTITY")
        return identity
