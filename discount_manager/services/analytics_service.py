from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from discount_manager.core.clock import utcnow
from discount_manager.enums.discounts import LedgerReason, RuleKind, RuleStatus, TargetScope
from discount_manager.models.price_ledger import PriceLedgerEntry
from discount_manager.repositories.unit_of_work import UnitOfWork
from discount_manager.schemas.analytics import (
    DailyDiscountStats,
    DiscountAnalyticsResponse,
    DiscountKindStats,
    DiscountRecommendation,
)
from discount_manager.services.expression import is_number

TIMEFRAMES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


# ---------- DISCOUNT ANALYTICS ----------

def get_discount_analytics(
    db: Session,
    timeframe: str = "30d",
    now: Optional[datetime] = None,
) -> DiscountAnalyticsResponse:
    """
    Summary of rule-driven price drops recorded in the ledger within
    `timeframe` (7d, 30d or 90d), plus counts over the rules themselves.
    """
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Unknown timeframe {timeframe!r}; expected one of {', '.join(TIMEFRAMES)}")

    uow = UnitOfWork(db)
    now = now or utcnow()
    start = now - TIMEFRAMES[timeframe]

    changes: List[PriceLedgerEntry] = [
        e for e in uow.ledger.since(start)
        if e.reason == LedgerReason.rule_applied.value and e.timestamp <= now
    ]
    amounts = [Decimal(e.old_price) - Decimal(e.new_price) for e in changes]

    total_discounts = len(amounts)
    average_discount = float(sum(amounts) / total_discounts) if total_discounts else 0.0

    rules = uow.rules.list_rules(include_deleted=True, limit=None)
    active_rules = sum(1 for r in rules if r.status == RuleStatus.active.value and r.deleted_at is None)

    return DiscountAnalyticsResponse(
        timeframe=timeframe,
        total_discounts=total_discounts,
        average_discount=average_discount,
        items_affected=len({e.item_id for e in changes}),
        revenue_impact=float(-sum(amounts)) if amounts else 0.0,
        active_rules=active_rules,
        popular_discounts=_kind_stats(rules),
        time_based_stats=_daily_stats(changes),
    )


def _kind_stats(rules) -> List[DiscountKindStats]:
    counts = defaultdict(int)
    values = defaultdict(list)
    for rule in rules:
        counts[rule.kind] += 1
        # formula values have no single magnitude
        if is_number(rule.value):
            values[rule.kind].append(Decimal(rule.value))

    stats = []
    for kind, count in counts.items():
        kind_values = values[kind]
        average = float(sum(kind_values) / len(kind_values)) if kind_values else 0.0
        stats.append(DiscountKindStats(kind=kind, count=count, average_value=average))
    return sorted(stats, key=lambda s: (-s.count, s.kind))


def _daily_stats(changes: List[PriceLedgerEntry]) -> List[DailyDiscountStats]:
    buckets = defaultdict(list)
    for change in changes:
        buckets[change.timestamp.date()].append(
            Decimal(change.old_price) - Decimal(change.new_price)
        )

    return [
        DailyDiscountStats(
            date=day,
            discount_count=len(amounts),
            average_discount=float(sum(amounts) / len(amounts)),
        )
        for day, amounts in sorted(buckets.items())
    ]


# ---------- DISCOUNT RECOMMENDATIONS ----------

DEFAULT_SUGGESTED_DISCOUNT = 15.0


def get_discount_recommendations(db: Session) -> List[DiscountRecommendation]:
    """
    One suggestion per product type in the catalog mirror, taken from the
    percentage rule whose applications carried the most revenue. Product
    types with no such history get a conservative default.
    """
    uow = UnitOfWork(db)
    rules = [
        r for r in uow.rules.list_rules(include_deleted=True, limit=None)
        if r.status != RuleStatus.draft.value
        and r.target_scope == TargetScope.product_type.value
        and r.kind == RuleKind.percentage.value
    ]
    entries = uow.ledger.caused_by([r.rule_id for r in rules], LedgerReason.rule_applied.value)

    revenue_by_rule = defaultdict(Decimal)
    for entry in entries:
        revenue_by_rule[entry.cause_rule_id] += Decimal(entry.new_price)

    recommendations = []
    for category in uow.catalog.product_types():
        campaigns = [
            (float(r.value), float(revenue_by_rule[r.rule_id]))
            for r in rules
            if r.target_id == category
        ]
        recommendations.append(_recommend(category, campaigns))
    return recommendations


def _recommend(category: str, campaigns: List[Tuple[float, float]]) -> DiscountRecommendation:
    if not campaigns:
        return DiscountRecommendation(
            category=category,
            suggested_discount=DEFAULT_SUGGESTED_DISCOUNT,
            expected_revenue=0.0,
            confidence=0.5,
            reasoning="No historical data available. Suggesting a conservative discount.",
        )

    suggested, _ = max(campaigns, key=lambda c: c[1])
    revenues = [revenue for _, revenue in campaigns]
    confidence = _confidence(revenues)

    similar = [revenue for value, revenue in campaigns if abs(value - suggested) <= 5]
    expected = sum(similar) / len(similar)

    level = "high" if confidence > 0.8 else "moderate" if confidence > 0.5 else "low"
    average = sum(revenues) / len(revenues)
    return DiscountRecommendation(
        category=category,
        suggested_discount=suggested,
        expected_revenue=expected,
        confidence=confidence,
        reasoning=(
            f"Based on {len(campaigns)} past campaign(s) with {level} confidence. "
            f"Average revenue per campaign: {average:.2f}. "
            f"{suggested:g}% gave the highest revenue."
        ),
    )


def _confidence(revenues: List[float]) -> float:
    if len(revenues) < 2:
        return 0.5
    mean = sum(revenues) / len(revenues)
    variance = sum((r - mean) ** 2 for r in revenues) / len(revenues)
    # spread relative to the mean lowers confidence, more campaigns raise it
    variance_score = max(0.0, 1 - variance / mean) if mean else 0.0
    data_score = min(1.0, len(revenues) / 10)
    return variance_score * 0.7 + data_score * 0.3
