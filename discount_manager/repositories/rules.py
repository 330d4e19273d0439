from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select

from discount_manager.models.discount_rule import DiscountRule
from discount_manager.repositories.base import SQLAlchemyRepository


class RuleRepository(SQLAlchemyRepository[DiscountRule]):
    model = DiscountRule

    def get(self, rule_id: str) -> Optional[DiscountRule]:
        return self.db.execute(
            select(DiscountRule).where(DiscountRule.rule_id == rule_id)
        ).scalar_one_or_none()

    def get_many(self, rule_ids: Iterable[str]) -> List[DiscountRule]:
        """Rules for `rule_ids`, in the order given; unknown ids are dropped."""
        rule_ids = list(rule_ids)
        if not rule_ids:
            return []
        rows = self.db.execute(
            select(DiscountRule).where(DiscountRule.rule_id.in_(rule_ids))
        ).scalars().all()
        by_id = {r.rule_id: r for r in rows}
        return [by_id[rid] for rid in rule_ids if rid in by_id]

    def list_rules(
        self,
        status: Optional[str] = None,
        include_deleted: bool = True,
        skip: int = 0,
        limit: int = 100,
    ) -> List[DiscountRule]:
        stmt = select(DiscountRule)
        if status:
            stmt = stmt.where(DiscountRule.status == status)
        if not include_deleted:
            stmt = stmt.where(DiscountRule.deleted_at.is_(None))
        stmt = stmt.order_by(DiscountRule.start_at.desc(), DiscountRule.id.desc())
        return list(self.db.execute(stmt.offset(skip).limit(limit)).scalars().all())

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.execute(
            select(DiscountRule.status, func.count()).group_by(DiscountRule.status)
        ).all()
        return {status: count for status, count in rows}
