"""
Reminder Schemas
Pydantic models for adaptive reminder responses
"""

from typing import List
from pydantic import BaseModel, Field


class AdaptiveTime(BaseModel):
    """Reminder time for one scheduled clock time"""
    scheduled_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    adaptive_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    mean_delay: int
    is_adaptive: bool
    days_analyzed: int


class AdaptiveTimeList(BaseModel):
    """Adaptive times for every clock time of a medicine"""
    patient_id: int
    medicine_id: int
    times: List[AdaptiveTime]


class AdaptiveTimingSummary(BaseModel):
    """Adaptive timing status across a patient's medicines"""
    patient_id: int
    medicines_with_adaptive_timing: int
    medicines_pending_data: int
    overall_average_delay: int


class OptimalTimes(BaseModel):
    """Clock times at which a medicine is usually taken"""
    patient_id: int
    medicine_id: int
    times: List[str]
