"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from typing import Optional
from datetime import date
from fastapi import Query

from database import get_db


def as_of_param(
    as_of: Optional[date] = Query(None, description="Last day of the window, defaults to today")
) -> Optional[date]:
    """
    Evaluation day for window queries
    """
    return as_of


class ServiceDependency:
    """
    Dependency injection for services
    """

    @staticmethod
    def get_adherence_service():
        from services.adherence_service import adherence_service
        return adherence_service

    @staticmethod
    def get_dose_service():
        from services.dose_service import dose_service
        return dose_service

    @staticmethod
    def get_medicine_service():
        from services.medicine_service import medicine_service
        return medicine_service

    @staticmethod
    def get_reminder_engine():
        from actions.reminder_engine import reminder_engine
        return reminder_engine

    @staticmethod
    def get_alert_engine():
        from actions.alert_engine import alert_engine
        return alert_engine

    @staticmethod
    def get_trend_engine():
        from actions.trend_engine import trend_engine
        return trend_engine


# Service dependency instances
services = ServiceDependency()


__all__ = ["get_db", "as_of_param", "services", "ServiceDependency"]
