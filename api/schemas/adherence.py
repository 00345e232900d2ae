"""
Adherence Schemas
Pydantic models for adherence statistics API responses
"""

from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field


class AdherenceWindow(str, Enum):
    """Named trailing windows"""
    TODAY = "today"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ==================== RESPONSE SCHEMAS ====================

class AdherenceRate(BaseModel):
    """Adherence rate for a trailing window"""
    patient_id: int
    window: AdherenceWindow
    days: int
    total: int
    taken: int
    missed: int
    skipped: int
    pending: int
    adherence_rate: int = Field(..., ge=0, le=100)


class AdherenceDetails(BaseModel):
    """Composite adherence report over the monthly window"""
    patient_id: int
    adherence_percentage: int = Field(..., ge=0, le=100)
    skip_rate: int = Field(..., ge=0, le=100)
    missed_count: int
    weekly_adherence: int = Field(..., ge=0, le=100)
    average_delay_time: int = Field(..., description="Minutes")
    most_missed_time_period: str
    total_doses: int
    taken_doses: int
    skipped_doses: int
    missed_doses: int


class DailyStat(BaseModel):
    """Stored adherence row for one day"""
    patient_id: int
    date: str
    total_doses: int
    taken_doses: int
    adherence_rate: float


class DailyStatList(BaseModel):
    """Stored daily rows, oldest first"""
    patient_id: int
    days: int
    stats: List[DailyStat]


class AdherenceTrend(BaseModel):
    """Direction of stored daily adherence"""
    patient_id: int
    days: int
    trend: str
    change: float
    points: int


class SmartSuggestions(BaseModel):
    """Suggestions for the patient home screen"""
    patient_id: int
    suggestions: List[str]
    generated_for: Optional[str] = None
