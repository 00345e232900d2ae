"""
Reminders API Router
Endpoints for adaptive reminder times
"""

from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from api.deps import get_db, as_of_param, services
from api.schemas.reminder import (
    AdaptiveTime,
    AdaptiveTimeList,
    AdaptiveTimingSummary,
    OptimalTimes,
)


router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("/adaptive/{patient_id}/{medicine_id}", response_model=AdaptiveTime)
async def get_adaptive_reminder_time(
    patient_id: int,
    medicine_id: int,
    scheduled_time: str = Query(..., description="Scheduled clock time, HH:MM"),
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get the reminder time for one scheduled clock time

    The reminder moves later by the patient's mean delay once at least
    three taken doses exist in the adaptive window.
    """
    reminder_engine = services.get_reminder_engine()

    info = await reminder_engine.get_adaptive_reminder_time(
        patient_id=patient_id,
        medicine_id=medicine_id,
        scheduled_time=scheduled_time,
        as_of=as_of,
        db=db
    )

    return AdaptiveTime(**info.to_dict())


@router.get("/adaptive/{patient_id}/{medicine_id}/all", response_model=AdaptiveTimeList)
async def get_all_adaptive_reminder_times(
    patient_id: int,
    medicine_id: int,
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get adaptive times for every configured clock time of a medicine
    """
    medicine_service = services.get_medicine_service()
    reminder_engine = services.get_reminder_engine()

    medicine = medicine_service.get_medicine(db, medicine_id)
    if medicine.patient_id != patient_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Medicine {medicine_id} not found for patient {patient_id}"
        )

    infos = await reminder_engine.get_all_adaptive_reminder_times(
        patient_id, medicine, as_of=as_of, db=db
    )

    return AdaptiveTimeList(
        patient_id=patient_id,
        medicine_id=medicine_id,
        times=[AdaptiveTime(**i.to_dict()) for i in infos]
    )


@router.get("/summary/{patient_id}", response_model=AdaptiveTimingSummary)
async def get_adaptive_timing_summary(
    patient_id: int,
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get adaptive timing status across a patient's medicines
    """
    reminder_engine = services.get_reminder_engine()

    summary = await reminder_engine.get_adaptive_timing_summary(patient_id, as_of=as_of, db=db)

    return AdaptiveTimingSummary(patient_id=patient_id, **summary.to_dict())


@router.get("/optimal/{patient_id}/{medicine_id}", response_model=OptimalTimes)
async def get_optimal_reminder_times(
    patient_id: int,
    medicine_id: int,
    db: Session = Depends(get_db)
):
    """
    Get the clock time a medicine is usually taken at
    """
    reminder_engine = services.get_reminder_engine()

    times = await reminder_engine.get_optimal_reminder_times(patient_id, medicine_id, db=db)

    return OptimalTimes(patient_id=patient_id, medicine_id=medicine_id, times=times)
