from typing import List, Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from discount_manager.database.connection import get_db
from discount_manager.schemas.analytics import DiscountAnalyticsResponse, DiscountRecommendation
from discount_manager.services.analytics_service import (
    get_discount_analytics,
    get_discount_recommendations,
)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/discounts", response_model=DiscountAnalyticsResponse)
def discount_analytics_route(
    timeframe: Literal["7d", "30d", "90d"] = "30d",
    db: Session = Depends(get_db),
):
    return get_discount_analytics(db, timeframe)


@router.get("/recommendations", response_model=List[DiscountRecommendation])
def discount_recommendations_route(db: Session = Depends(get_db)):
    return get_discount_recommendations(db)
