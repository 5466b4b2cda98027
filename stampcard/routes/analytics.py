from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stampcard.db import get_db
from stampcard.schemas.analytics import (
    BusinessSummaryOut,
    DailyTransactionsData,
    DailyTransactionsOut,
    OverviewData,
    OverviewOut,
)
from stampcard.services.analytics_service import business_overview, business_summary, daily_transactions
from stampcard.services.business_service import require_business


router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("/{business_id}", response_model=OverviewOut)
def overview(business_id: str, db: Session = Depends(get_db)):
    require_business(db, business_id)
    return OverviewOut(message="ok", data=OverviewData(**business_overview(db, business_id)))


@router.get("/{business_id}/summary", response_model=BusinessSummaryOut)
def summary(business_id: str, days: int = Query(default=30, ge=1, le=365), db: Session = Depends(get_db)):
    require_business(db, business_id)
    return BusinessSummaryOut(**business_summary(db, business_id, days))


@router.get("/{business_id}/daily-transactions", response_model=DailyTransactionsOut)
def daily(business_id: str, days: int = Query(default=30, ge=1, le=90), db: Session = Depends(get_db)):
    require_business(db, business_id)
    return DailyTransactionsOut(message="ok", data=DailyTransactionsData(**daily_transactions(db, business_id, days)))
