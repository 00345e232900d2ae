"""
Adherence API Router
Endpoints for adherence rates, daily statistics and trends
"""

from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.deps import get_db, as_of_param, services
from api.schemas.adherence import (
    AdherenceWindow,
    AdherenceRate,
    AdherenceDetails,
    DailyStat,
    DailyStatList,
    AdherenceTrend,
    SmartSuggestions,
)
from config import engine_config


router = APIRouter(prefix="/adherence", tags=["adherence"])


WINDOW_DAYS = {
    AdherenceWindow.TODAY: 0,
    AdherenceWindow.WEEKLY: engine_config.WEEKLY_WINDOW_DAYS,
    AdherenceWindow.MONTHLY: engine_config.MONTHLY_WINDOW_DAYS,
}


@router.get("/rate/{patient_id}", response_model=AdherenceRate)
async def get_adherence_rate(
    patient_id: int,
    window: AdherenceWindow = Query(AdherenceWindow.WEEKLY),
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get adherence rate for a named trailing window

    - **today**: the current calendar day
    - **weekly**: today and the 7 days before it
    - **monthly**: today and the 30 days before it
    """
    adherence_service = services.get_adherence_service()

    result = await adherence_service.get_window_rate(
        patient_id=patient_id,
        days=WINDOW_DAYS[window],
        as_of=as_of,
        db=db
    )

    return AdherenceRate(patient_id=patient_id, window=window, **result)


@router.get("/details/{patient_id}", response_model=AdherenceDetails)
async def get_adherence_details(
    patient_id: int,
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get the composite adherence report over the monthly window
    """
    adherence_service = services.get_adherence_service()

    details = await adherence_service.get_adherence_details(patient_id, as_of=as_of, db=db)

    return AdherenceDetails(patient_id=patient_id, **details.to_dict())


@router.post("/daily-stat/{patient_id}", response_model=DailyStat, status_code=status.HTTP_201_CREATED)
async def upsert_daily_stat(
    patient_id: int,
    target_date: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Recompute and store the adherence row for one day
    """
    adherence_service = services.get_adherence_service()

    stat = await adherence_service.upsert_daily_stat(patient_id, target_date=target_date, db=db)

    return DailyStat(**stat)


@router.get("/stats/{patient_id}", response_model=DailyStatList)
async def get_daily_stats(
    patient_id: int,
    days: int = Query(7, ge=0, le=365),
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get stored daily adherence rows, oldest first
    """
    adherence_service = services.get_adherence_service()

    stats = await adherence_service.get_daily_stats(patient_id, days=days, as_of=as_of, db=db)

    return DailyStatList(
        patient_id=patient_id,
        days=days,
        stats=[DailyStat(**s) for s in stats]
    )


@router.get("/trend/{patient_id}", response_model=AdherenceTrend)
async def get_adherence_trend(
    patient_id: int,
    days: int = Query(7, ge=0, le=365),
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Classify stored daily adherence as improving, declining or stable
    """
    trend_engine = services.get_trend_engine()

    result = await trend_engine.predict_trend(patient_id, days=days, as_of=as_of, db=db)

    return AdherenceTrend(patient_id=patient_id, days=days, **result.to_dict())


@router.get("/suggestions/{patient_id}", response_model=SmartSuggestions)
async def get_smart_suggestions(
    patient_id: int,
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get short suggestions for the patient home screen
    """
    trend_engine = services.get_trend_engine()

    suggestions = await trend_engine.get_smart_suggestions(patient_id, as_of=as_of, db=db)

    return SmartSuggestions(
        patient_id=patient_id,
        suggestions=suggestions,
        generated_for=(as_of or date.today()).isoformat()
    )
