"""
Dose Schemas
Pydantic models for dose log requests and responses
"""

from typing import List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class DoseStatusEnum(str, Enum):
    """Dose status values"""
    PENDING = "pending"
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"


# ==================== REQUEST SCHEMAS ====================

class DoseLogCreate(BaseModel):
    """Schema for creating a pending dose"""
    patient_id: int
    medicine_id: int
    scheduled_time: datetime


class DoseTaken(BaseModel):
    """Schema for marking a dose taken"""
    taken_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class DoseSkipped(BaseModel):
    """Schema for marking a dose skipped"""
    notes: Optional[str] = Field(None, max_length=500)


# ==================== RESPONSE SCHEMAS ====================

class DoseLogResponse(BaseModel):
    """Schema for dose log response"""
    id: int
    medicine_id: int
    patient_id: int
    scheduled_time: Optional[datetime] = None  # None when the stored value is unreadable
    taken_at: Optional[datetime] = None
    status: DoseStatusEnum
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class DoseLogList(BaseModel):
    """A patient's dose logs for one day"""
    patient_id: int
    date: str
    logs: List[DoseLogResponse]
    total: int
