"""
Alerts API Router
Endpoints for caregiver and doctor alerts
"""

from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_db, as_of_param, services
from api.schemas.alert import (
    AlertResponse,
    CaregiverAlertList,
    DoctorAlertList,
)


router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/caregiver/{patient_id}", response_model=CaregiverAlertList)
async def get_caregiver_alerts(
    patient_id: int,
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get alerts for one patient, critical first
    """
    alert_engine = services.get_alert_engine()

    result = await alert_engine.get_caregiver_alerts(patient_id, as_of=as_of, db=db)
    data = result.to_dict()

    return CaregiverAlertList(
        patient_id=patient_id,
        alerts=[AlertResponse(**a) for a in data.pop("alerts")],
        **data
    )


@router.get("/doctor/{doctor_id}", response_model=DoctorAlertList)
async def get_doctor_alerts(
    doctor_id: int,
    as_of: Optional[date] = Depends(as_of_param),
    db: Session = Depends(get_db)
):
    """
    Get alerts across every patient linked to a doctor
    """
    alert_engine = services.get_alert_engine()

    result = await alert_engine.get_doctor_alerts(doctor_id, as_of=as_of, db=db)
    data = result.to_dict()

    return DoctorAlertList(
        doctor_id=doctor_id,
        alerts=[AlertResponse(**a) for a in data.pop("alerts")],
        **data
    )
