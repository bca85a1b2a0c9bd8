# backend/creatorlink/repositories/campaign_repository.py
"""Campaign lookups used to authorize conversation initiation."""

from typing import List, Optional, cast

from sqlalchemy.orm import Query, Session, selectinload

from ..models.campaign import Campaign, CampaignApplication
from .base_repository import BaseRepository


class CampaignRepository(BaseRepository[Campaign]):
    def __init__(self, db: Session):
        super().__init__(db, Campaign)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Campaign.applications))

    def get_applied_creator_ids(self, campaign_id: str) -> List[str]:
        rows = (
            self.db.query(CampaignApplication.creator_id)
            .filter(CampaignApplication.campaign_id == campaign_id)
            .order_by(CampaignApplication.applied_at.asc())
            .all()
        )
        return [str(creator_id) for (creator_id,) in rows]

    def get_application(self, campaign_id: str, creator_id: str) -> Optional[CampaignApplication]:
        return cast(
            Optional[CampaignApplication],
            self.db.query(CampaignApplication)
            .filter(
                CampaignApplication.campaign_id == campaign_id,
                CampaignApplication.creator_id == creator_id,
            )
            .first(),
        )
