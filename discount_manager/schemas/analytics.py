from datetime import date
from typing import List

from pydantic import BaseModel


class DiscountKindStats(BaseModel):
    kind: str
    count: int
    average_value: float


class DailyDiscountStats(BaseModel):
    date: date
    discount_count: int
    average_discount: float


class DiscountAnalyticsResponse(BaseModel):
    timeframe: str
    total_discounts: int
    average_discount: float
    items_affected: int
    revenue_impact: float
    active_rules: int
    popular_discounts: List[DiscountKindStats] = []
    time_based_stats: List[DailyDiscountStats] = []


class DiscountRecommendation(BaseModel):
    category: str
    suggested_discount: float
    expected_revenue: float
    confidence: float
    reasoning: str
