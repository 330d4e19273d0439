from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from discount_manager.database.connection import Base

ModelType = TypeVar("ModelType", bound=Base)


class SQLAlchemyRepository(Generic[ModelType]):
    """
    Storage access for one model. Repositories only stage changes on the
    session; committing belongs to the caller's unit of work.
    """

    model: Type[ModelType]

    def __init__(self, db: Session):
        self.db = db

    def add(self, obj: ModelType) -> ModelType:
        self.db.add(obj)
        self.db.flush()
        return obj

    def list(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        stmt = self._filtered(select(self.model), filters)
        stmt = stmt.offset(skip).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        stmt = self._filtered(select(func.count()).select_from(self.model), filters)
        return self.db.execute(stmt).scalar() or 0

    def _filtered(self, stmt, filters: Optional[Dict[str, Any]]):
        for key, value in (filters or {}).items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        return stmt
