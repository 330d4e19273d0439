from datetime import timezone as dt_timezone

from sqlalchemy import Column, Integer, String, JSON, DateTime

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import Base


def _as_utc(value):
    return value.replace(tzinfo=dt_timezone.utc) if value is not None else None


class DiscountRule(Base):
    __tablename__ = "discount_rules"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(String, unique=True, index=True, nullable=False)  # e.g. RULE_1A2B3C4D
    name = Column(String, nullable=False)
    kind = Column(String, nullable=False)  # percentage / fixed / formula
    # number for percentage/fixed, arithmetic expression for formula
    value = Column(String, nullable=False)

    target_scope = Column(String, nullable=False)  # product / collection / vendor / product_type
    target_id = Column(String, nullable=False, index=True)

    start_at = Column(DateTime, nullable=False)  # UTC
    end_at = Column(DateTime, nullable=True)  # UTC
    timezone = Column(String, nullable=False, default="UTC")

    tags_add = Column(JSON, default=list)
    tags_remove = Column(JSON, default=list)

    status = Column(String, nullable=False, default="draft", index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    @property
    def target(self):
        return {"scope": self.target_scope, "scope_id": self.target_id}

    @property
    def schedule(self):
        # stored naive UTC; handed out with an explicit offset
        return {
            "start_at": _as_utc(self.start_at),
            "end_at": _as_utc(self.end_at),
            "timezone": self.timezone,
        }

    @property
    def tag_mutations(self):
        return {"add": list(self.tags_add or []), "remove": list(self.tags_remove or [])}

    def __repr__(self):
        return f"<DiscountRule {self.rule_id} {self.kind}={self.value} {self.status}>"
