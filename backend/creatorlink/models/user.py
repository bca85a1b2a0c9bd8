# backend/creatorlink/models/user.py
"""
User model, as far as the messaging core needs it.

Registration, approval workflows and credentials live outside this
package; the core only reads identity, role, standing and labels.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
import ulid

from ..core.enums import RoleName, StandingStatus
from ..database import Base
from .base_enum import create_safe_enum


class User(Base):
    """
    Account referenced by conversations and messages.

    Attributes:
        id: ULID primary key
        email: Unique email address
        role: brand, creator or admin
        status: approval standing (pending, approved, rejected)
        brand_name: Display name for brand accounts
        insta_username: Handle for creator accounts
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(create_safe_enum(RoleName, "role_name_enum"), nullable=False)
    status = Column(
        create_safe_enum(StandingStatus, "standing_status_enum"),
        nullable=False,
        default=StandingStatus.PENDING,
    )
    brand_name = Column(String(100), nullable=True)
    insta_username = Column(String(100), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role}, status={self.status})>"

    @property
    def display_label(self) -> str:
        """Brand name for brands, handle for creators, email otherwise."""
        if self.role == RoleName.BRAND and self.brand_name:
            return str(self.brand_name)
        if self.role == RoleName.CREATOR and self.insta_username:
            return str(self.insta_username)
        return str(self.email)

    @property
    def is_approved(self) -> bool:
        return self.status == StandingStatus.APPROVED
