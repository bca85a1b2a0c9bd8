# backend/creatorlink/models/campaign.py
"""
Campaign and application models.

Campaign CRUD is handled elsewhere; conversations only need the owner,
the name, and which creators applied.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import CampaignStatus
from ..database import Base
from .base_enum import create_safe_enum


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    brand_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        create_safe_enum(CampaignStatus, "campaign_status_enum"),
        nullable=False,
        default=CampaignStatus.ACTIVE,
    )
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    brand = relationship("User", foreign_keys=[brand_id])
    applications = relationship(
        "CampaignApplication",
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="CampaignApplication.applied_at",
    )

    def __repr__(self) -> str:
        return f"<Campaign(id={self.id}, brand={self.brand_id}, name={self.name!r})>"


class CampaignApplication(Base):
    """A creator's application to a campaign; one per (campaign, creator)."""

    __tablename__ = "campaign_applications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    campaign_id = Column(
        String(26), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    creator_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    applied_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    campaign = relationship("Campaign", back_populates="applications")

    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_campaign_applications_pair"),
    )
