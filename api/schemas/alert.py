"""
Alert Schemas
Pydantic models for caregiver and doctor alert responses
"""

from typing import List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel


class AlertTypeEnum(str, Enum):
    MISSED_3_TIMES = "missed_3_times"
    LOW_STOCK = "low_stock"
    LOW_ADHERENCE = "low_adherence"


class AlertSeverityEnum(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class AlertResponse(BaseModel):
    """A single derived alert"""
    id: str
    type: AlertTypeEnum
    severity: AlertSeverityEnum
    title: str
    message: str
    medicine_id: Optional[int] = None
    medicine_name: Optional[str] = None
    patient_id: Optional[int] = None
    created_at: datetime


class CaregiverAlertList(BaseModel):
    """Alerts for one patient, critical first"""
    patient_id: int
    alerts: List[AlertResponse]
    missed_count: int
    low_stock_count: int
    low_adherence: bool


class DoctorAlertList(BaseModel):
    """Alerts across a doctor's panel, critical first"""
    doctor_id: int
    alerts: List[AlertResponse]
    patients_with_low_adherence: int
    patients_with_missed_medicines: int
    total_alerts: int
