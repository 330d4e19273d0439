from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, text

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import Base


class ScheduledEvent(Base):
    __tablename__ = "scheduled_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String, unique=True, index=True, nullable=False)  # e.g. EVT_1A2B3C4D5E
    rule_id = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=False)  # activate / deactivate
    fire_at = Column(DateTime, nullable=False, index=True)
    # set exactly once, by the sweep that claimed it or by a cancellation
    applied_at = Column(DateTime, nullable=True, index=True)
    cancelled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index(
            "uq_scheduled_events_pending",
            "rule_id",
            "kind",
            unique=True,
            sqlite_where=text("applied_at IS NULL"),
            postgresql_where=text("applied_at IS NULL"),
        ),
    )
