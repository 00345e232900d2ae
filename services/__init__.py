"""
Services Module
Business logic layer for the MediTrack application
"""

from services.aggregation_service import TimeWindowAggregator, time_window_aggregator
from services.adherence_service import AdherenceService, adherence_service
from services.medicine_service import MedicineService, medicine_service
from services.patient_service import PatientService, patient_service
from services.dose_service import DoseService, dose_service


__all__ = [
    # Service classes
    "TimeWindowAggregator",
    "AdherenceService",
    "MedicineService",
    "PatientService",
    "DoseService",
    # Singleton instances
    "time_window_aggregator",
    "adherence_service",
    "medicine_service",
    "patient_service",
    "dose_service",
]
