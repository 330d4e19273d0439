from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, func, select, update

from discount_manager.enums.discounts import EventKind
from discount_manager.models.scheduled_event import ScheduledEvent
from discount_manager.repositories.base import SQLAlchemyRepository


class EventRepository(SQLAlchemyRepository[ScheduledEvent]):
    model = ScheduledEvent

    def get(self, event_id: str) -> Optional[ScheduledEvent]:
        return self.db.execute(
            select(ScheduledEvent).where(ScheduledEvent.event_id == event_id)
        ).scalar_one_or_none()

    def for_rule(self, rule_id: str) -> List[ScheduledEvent]:
        stmt = (
            select(ScheduledEvent)
            .where(ScheduledEvent.rule_id == rule_id)
            .order_by(ScheduledEvent.created_at.asc(), ScheduledEvent.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def due(self, now: datetime, limit: int = 500) -> List[ScheduledEvent]:
        """Unapplied events with fire_at <= now; activations first on ties."""
        kind_order = case((ScheduledEvent.kind == EventKind.activate.value, 0), else_=1)
        stmt = (
            select(ScheduledEvent)
            .where(
                ScheduledEvent.fire_at <= now,
                ScheduledEvent.applied_at.is_(None),
            )
            .order_by(ScheduledEvent.fire_at.asc(), kind_order, ScheduledEvent.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def pending(self, limit: int = 500) -> List[ScheduledEvent]:
        stmt = (
            select(ScheduledEvent)
            .where(ScheduledEvent.applied_at.is_(None))
            .order_by(ScheduledEvent.fire_at.asc(), ScheduledEvent.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def claim(self, event_id: str, now: datetime) -> bool:
        """
        Mark the event applied if nobody has yet. Only the caller that gets
        True may run the event's side effects.
        """
        result = self.db.execute(
            update(ScheduledEvent)
            .where(
                ScheduledEvent.event_id == event_id,
                ScheduledEvent.applied_at.is_(None),
            )
            .values(applied_at=now)
        )
        return result.rowcount == 1

    def cancel_pending(self, rule_id: str, now: datetime) -> int:
        result = self.db.execute(
            update(ScheduledEvent)
            .where(
                ScheduledEvent.rule_id == rule_id,
                ScheduledEvent.applied_at.is_(None),
            )
            .values(applied_at=now, cancelled=True)
        )
        return result.rowcount

    def next_fire_at(self) -> Optional[datetime]:
        return self.db.execute(
            select(func.min(ScheduledEvent.fire_at)).where(ScheduledEvent.applied_at.is_(None))
        ).scalar()

    def count_pending(self, due_by: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(ScheduledEvent).where(
            ScheduledEvent.applied_at.is_(None)
        )
        if due_by is not None:
            stmt = stmt.where(ScheduledEvent.fire_at <= due_by)
        return self.db.execute(stmt).scalar() or 0
