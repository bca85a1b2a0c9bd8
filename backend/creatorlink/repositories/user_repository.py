# backend/creatorlink/repositories/user_repository.py
"""User lookups for identity resolution."""

from typing import Dict, List, Sequence

from sqlalchemy.orm import Session

from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_many_by_ids(self, user_ids: Sequence[str]) -> Dict[str, User]:
        if not user_ids:
            return {}
        users: List[User] = self.db.query(User).filter(User.id.in_(list(user_ids))).all()
        return {str(user.id): user for user in users}
