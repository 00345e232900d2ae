"""
Shared test helpers
"""

from datetime import datetime, date, time


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Datetime on day at hour:minute"""
    return datetime.combine(day, time(hour, minute))
