# backend/creatorlink/repositories/base_repository.py
"""
Base Repository Pattern for CreatorLink messaging

Repositories never commit. Services own the unit of work through
BaseService.transaction(); repositories only query, add and flush.
"""

import logging
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database import get_dialect_name

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Shared lookups for a single mapped model.

    Attributes:
        db: SQLAlchemy session (managed by service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    @property
    def supports_row_locks(self) -> bool:
        """SQLite has no SELECT ... FOR UPDATE; the conversation lock covers it there."""
        return self.dialect_name not in ("sqlite", "")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Retrieve an entity by its ULID, optionally with its relationships."""
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}") from e

    def flush(self) -> None:
        self.db.flush()

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override in subclasses to eager-load relationships."""
        return query
