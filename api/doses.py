"""
Doses API Router
Endpoints for creating dose logs and recording their outcome
"""

from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.deps import get_db, services
from api.schemas.dose import (
    DoseLogCreate,
    DoseTaken,
    DoseSkipped,
    DoseLogResponse,
    DoseLogList,
)
from services.dose_service import dose_log_to_dict


router = APIRouter(prefix="/doses", tags=["doses"])


@router.post("/", response_model=DoseLogResponse, status_code=status.HTTP_201_CREATED)
async def create_dose_log(
    dose_data: DoseLogCreate,
    db: Session = Depends(get_db)
):
    """
    Create a pending dose for one medicine at one moment
    """
    dose_service = services.get_dose_service()

    log = dose_service.create_dose_log(
        db,
        patient_id=dose_data.patient_id,
        medicine_id=dose_data.medicine_id,
        scheduled_time=dose_data.scheduled_time
    )

    return DoseLogResponse(**dose_log_to_dict(log))


@router.post("/{log_id}/taken", response_model=DoseLogResponse)
async def mark_dose_taken(
    log_id: int,
    payload: Optional[DoseTaken] = None,
    db: Session = Depends(get_db)
):
    """
    Record a pending dose as taken and take one dose out of stock
    """
    dose_service = services.get_dose_service()
    payload = payload or DoseTaken()

    log = await dose_service.mark_taken(
        log_id,
        taken_at=payload.taken_at,
        notes=payload.notes,
        db=db
    )

    return DoseLogResponse(**log)


@router.post("/{log_id}/missed", response_model=DoseLogResponse)
async def mark_dose_missed(
    log_id: int,
    db: Session = Depends(get_db)
):
    """
    Record a pending dose as missed
    """
    dose_service = services.get_dose_service()

    log = await dose_service.mark_missed(log_id, db=db)

    return DoseLogResponse(**log)


@router.post("/{log_id}/skipped", response_model=DoseLogResponse)
async def mark_dose_skipped(
    log_id: int,
    payload: Optional[DoseSkipped] = None,
    db: Session = Depends(get_db)
):
    """
    Record a pending dose as intentionally skipped
    """
    dose_service = services.get_dose_service()

    log = await dose_service.mark_skipped(
        log_id,
        notes=payload.notes if payload else None,
        db=db
    )

    return DoseLogResponse(**log)


@router.get("/today/{patient_id}", response_model=DoseLogList)
async def get_today_logs(
    patient_id: int,
    target_date: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Get a patient's dose logs for one day, in schedule order
    """
    dose_service = services.get_dose_service()

    logs = await dose_service.get_today_logs(patient_id, target_date=target_date, db=db)

    return DoseLogList(
        patient_id=patient_id,
        date=(target_date or date.today()).isoformat(),
        logs=[DoseLogResponse(**log) for log in logs],
        total=len(logs)
    )
