"""
Aggregation Service
Time-window aggregation of dose logs, the base primitive of the adherence engine
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, asdict
from datetime import datetime, date, time, timedelta, timezone
from sqlalchemy.orm import Session
from sqlalchemy import and_

from database import get_db_context
import models
from models import DoseStatus


logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values"""
    return int(math.floor(value + 0.5))


def ensure_datetime(val: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp to a naive datetime.

    Returns None for missing or unparsable values so callers can skip the
    record instead of failing the whole computation.
    """
    if val is None:
        return None
    if isinstance(val, datetime):
        parsed = val
    elif isinstance(val, date):
        return datetime.combine(val, time.min)
    elif isinstance(val, str):
        text = val.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def delay_minutes(log: Any) -> Optional[float]:
    """Minutes between scheduled and taken time, None when either is unusable"""
    scheduled = ensure_datetime(getattr(log, "scheduled_time", None))
    taken = ensure_datetime(getattr(log, "taken_at", None))
    if scheduled is None or taken is None:
        return None
    return (taken - scheduled).total_seconds() / 60


def status_of(log: Any) -> Optional[DoseStatus]:
    """Normalize a log's status to DoseStatus (None if unrecognised)"""
    try:
        return DoseStatus(log.status)
    except ValueError:
        return None


def adherence_rate(taken: int, total: int) -> int:
    """Whole-number adherence percentage; an empty window counts as 100"""
    if total == 0:
        return 100
    return round_half_up(taken / total * 100)


def window_bounds(days: int, as_of: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    Datetime bounds of a calendar-day window.

    The window covers the dates as_of - days through as_of inclusive;
    days=0 is the single day as_of. The end bound is exclusive.
    """
    if days < 0:
        raise ValueError("days must not be negative")
    end_day = as_of or date.today()
    start_day = end_day - timedelta(days=days)
    return (
        datetime.combine(start_day, time.min),
        datetime.combine(end_day + timedelta(days=1), time.min),
    )


@dataclass
class WindowCounts:
    """Dose counts over one window"""
    total: int = 0
    taken: int = 0
    missed: int = 0
    skipped: int = 0
    pending: int = 0

    @property
    def rate(self) -> int:
        return adherence_rate(self.taken, self.total)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["adherence_rate"] = self.rate
        return data


def count_logs(logs: Iterable[Any]) -> WindowCounts:
    """Tally logs by status. Every log counts toward the total."""
    counts = WindowCounts()
    for log in logs:
        counts.total += 1
        status = status_of(log)
        if status == DoseStatus.TAKEN:
            counts.taken += 1
        elif status == DoseStatus.MISSED:
            counts.missed += 1
        elif status == DoseStatus.SKIPPED:
            counts.skipped += 1
        elif status == DoseStatus.PENDING:
            counts.pending += 1
    return counts


class TimeWindowAggregator:
    """
    Reads dose logs for a patient over calendar-day windows
    """

    def fetch_logs(
        self,
        session: Session,
        patient_id: int,
        days: int,
        as_of: Optional[date] = None,
        medicine_id: Optional[int] = None,
        status: Optional[DoseStatus] = None
    ) -> List[models.DoseLog]:
        """Logs whose scheduled date falls in the window, oldest first"""
        start, end = window_bounds(days, as_of)

        query = session.query(models.DoseLog).filter(
            and_(
                models.DoseLog.patient_id == patient_id,
                models.DoseLog.scheduled_time >= start,
                models.DoseLog.scheduled_time < end
            )
        )

        if medicine_id is not None:
            query = query.filter(models.DoseLog.medicine_id == medicine_id)
        if status is not None:
            query = query.filter(models.DoseLog.status == status)

        return query.order_by(models.DoseLog.scheduled_time).all()

    def count_window(
        self,
        session: Session,
        patient_id: int,
        days: int,
        as_of: Optional[date] = None,
        medicine_id: Optional[int] = None
    ) -> WindowCounts:
        """Synchronous version for internal use"""
        logs = self.fetch_logs(session, patient_id, days, as_of, medicine_id)
        return count_logs(logs)

    async def window_counts(
        self,
        patient_id: int,
        days: int,
        as_of: Optional[date] = None,
        medicine_id: Optional[int] = None,
        db: Optional[Session] = None
    ) -> WindowCounts:
        """
        Count doses in a trailing window

        Args:
            patient_id: Patient ID
            days: Days back from as_of (0 = that day only)
            as_of: Last day of the window, defaults to today
            medicine_id: Optional specific medicine
            db: Database session

        Returns:
            WindowCounts for the window
        """
        if db:
            return self.count_window(db, patient_id, days, as_of, medicine_id)

        with get_db_context() as session:
            return self.count_window(session, patient_id, days, as_of, medicine_id)


# Singleton instance
time_window_aggregator = TimeWindowAggregator()
