"""
Adherence Service
Adherence rates, daily statistics and the composite adherence report
"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_, desc

from config import EngineConfig, engine_config
from database import get_db_context
import models
from models import DoseStatus
from services.aggregation_service import (
    TimeWindowAggregator,
    WindowCounts,
    adherence_rate,
    count_logs,
    delay_minutes,
    ensure_datetime,
    round_half_up,
    status_of,
    time_window_aggregator,
)


logger = logging.getLogger(__name__)


NO_MISSES = "None"

# Checked in this order; ties keep the earlier period
TIME_PERIODS = (
    ("Morning", 6, 12),
    ("Afternoon", 12, 18),
    ("Evening", 18, 24),
    ("Night", 0, 6),
)


def time_period_for_hour(hour: int) -> str:
    for label, start, end in TIME_PERIODS:
        if start <= hour < end:
            return label
    raise ValueError(f"Hour out of range: {hour}")


def average_delay_minutes(logs: Iterable[Any]) -> int:
    """
    Mean lateness of taken doses, counting only doses that were late.
    Early doses are ignored rather than offsetting late ones.
    """
    delays = []
    for log in logs:
        if status_of(log) != DoseStatus.TAKEN:
            continue
        delay = delay_minutes(log)
        if delay is None:
            logger.warning(f"Skipping dose log {getattr(log, 'id', None)} with unusable timestamps")
            continue
        if delay > 0:
            delays.append(delay)

    if not delays:
        return 0
    return round_half_up(sum(delays) / len(delays))


def most_missed_time_period(logs: Iterable[Any]) -> str:
    """Time-of-day period with the most missed or skipped doses"""
    period_counts = {label: 0 for label, _, _ in TIME_PERIODS}

    for log in logs:
        if status_of(log) not in (DoseStatus.MISSED, DoseStatus.SKIPPED):
            continue
        scheduled = ensure_datetime(getattr(log, "scheduled_time", None))
        if scheduled is None:
            logger.warning(f"Skipping dose log {getattr(log, 'id', None)} with unusable scheduled time")
            continue
        period_counts[time_period_for_hour(scheduled.hour)] += 1

    best_label = NO_MISSES
    best_count = 0
    for label, _, _ in TIME_PERIODS:
        if period_counts[label] > best_count:
            best_label = label
            best_count = period_counts[label]
    return best_label


@dataclass
class AdherenceDetails:
    """Composite adherence snapshot over the monthly window"""
    adherence_percentage: int
    skip_rate: int
    missed_count: int
    weekly_adherence: int
    average_delay_time: int  # minutes
    most_missed_time_period: str
    total_doses: int
    taken_doses: int
    skipped_doses: int
    missed_doses: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AdherenceService:
    """
    Service for adherence rates and statistics
    """

    def __init__(
        self,
        aggregator: Optional[TimeWindowAggregator] = None,
        config: Optional[EngineConfig] = None
    ):
        self.aggregator = aggregator or time_window_aggregator
        self.config = config or engine_config

    @staticmethod
    def calculate_rate(counts: WindowCounts) -> int:
        """round(taken / total * 100), or 100 for an empty window"""
        return adherence_rate(counts.taken, counts.total)

    def _sync_window_rate(
        self,
        session: Session,
        patient_id: int,
        days: int,
        as_of: Optional[date] = None
    ) -> int:
        """Synchronous version for internal use"""
        counts = self.aggregator.count_window(session, patient_id, days, as_of)
        return self.calculate_rate(counts)

    def _sync_weekly_rate(
        self,
        session: Session,
        patient_id: int,
        as_of: Optional[date] = None
    ) -> int:
        return self._sync_window_rate(
            session, patient_id, self.config.WEEKLY_WINDOW_DAYS, as_of
        )

    async def get_window_rate(
        self,
        patient_id: int,
        days: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Adherence rate and counts for a trailing window

        Args:
            patient_id: Patient ID
            days: Days back from as_of (0 = that day only)
            as_of: Last day of the window, defaults to today
            db: Database session

        Returns:
            Counts plus the whole-number adherence rate
        """
        counts = await self.aggregator.window_counts(patient_id, days, as_of, db=db)
        result = counts.to_dict()
        result["days"] = days
        return result

    async def get_today_rate(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> int:
        """Adherence for the current calendar day"""
        counts = await self.aggregator.window_counts(patient_id, 0, as_of, db=db)
        return self.calculate_rate(counts)

    async def get_weekly_rate(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> int:
        """Adherence over the trailing week"""
        counts = await self.aggregator.window_counts(
            patient_id, self.config.WEEKLY_WINDOW_DAYS, as_of, db=db
        )
        return self.calculate_rate(counts)

    async def get_monthly_rate(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> int:
        """Adherence over the trailing month"""
        counts = await self.aggregator.window_counts(
            patient_id, self.config.MONTHLY_WINDOW_DAYS, as_of, db=db
        )
        return self.calculate_rate(counts)

    async def upsert_daily_stat(
        self,
        patient_id: int,
        target_date: Optional[date] = None,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Recompute and store the adherence row for one day.

        Replaces any existing row for (patient, date), so calling it again
        with unchanged logs stores the same values.
        """
        target = target_date or date.today()

        def _write(session: Session, counts: WindowCounts) -> models.DailyAdherenceStat:
            rate = (counts.taken / counts.total) * 100 if counts.total > 0 else 100.0

            stat = session.query(models.DailyAdherenceStat).filter(
                and_(
                    models.DailyAdherenceStat.patient_id == patient_id,
                    models.DailyAdherenceStat.date == target
                )
            ).first()

            if stat is None:
                stat = models.DailyAdherenceStat(patient_id=patient_id, date=target)
                session.add(stat)

            stat.total_doses = counts.total
            stat.taken_doses = counts.taken
            stat.adherence_rate = rate
            session.commit()
            return stat

        def _upsert(session: Session) -> Dict[str, Any]:
            counts = self.aggregator.count_window(session, patient_id, 0, target)
            try:
                stat = _write(session, counts)
            except IntegrityError:
                # Another writer inserted the row first; overwrite it
                session.rollback()
                stat = _write(session, counts)

            logger.info(
                f"Stored adherence for patient {patient_id} on {target.isoformat()}: "
                f"{stat.taken_doses}/{stat.total_doses}"
            )
            return self._stat_to_dict(stat)

        if db:
            return _upsert(db)

        with get_db_context() as session:
            return _upsert(session)

    async def get_daily_stats(
        self,
        patient_id: int,
        days: int = 7,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Stored daily rows, oldest first, at most `days` of the most recent"""
        def _get(session: Session) -> List[Dict[str, Any]]:
            return [self._stat_to_dict(s) for s in self._sync_daily_stats(session, patient_id, days, as_of)]

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    def _sync_daily_stats(
        self,
        session: Session,
        patient_id: int,
        days: int,
        as_of: Optional[date] = None
    ) -> List[models.DailyAdherenceStat]:
        end_day = as_of or date.today()
        start_day = end_day - timedelta(days=days)

        stats = session.query(models.DailyAdherenceStat).filter(
            and_(
                models.DailyAdherenceStat.patient_id == patient_id,
                models.DailyAdherenceStat.date >= start_day,
                models.DailyAdherenceStat.date <= end_day
            )
        ).order_by(desc(models.DailyAdherenceStat.date)).limit(days).all()

        stats.reverse()
        return stats

    async def get_adherence_details(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> AdherenceDetails:
        """
        Composite report over the monthly window

        Args:
            patient_id: Patient ID
            as_of: Last day of the window, defaults to today
            db: Database session

        Returns:
            AdherenceDetails snapshot
        """
        def _calculate(session: Session) -> AdherenceDetails:
            logs = self.aggregator.fetch_logs(
                session, patient_id, self.config.MONTHLY_WINDOW_DAYS, as_of
            )
            counts = count_logs(logs)
            skip_rate = round_half_up(counts.skipped / counts.total * 100) if counts.total > 0 else 0

            return AdherenceDetails(
                adherence_percentage=self.calculate_rate(counts),
                skip_rate=skip_rate,
                missed_count=counts.missed,
                weekly_adherence=self._sync_weekly_rate(session, patient_id, as_of),
                average_delay_time=average_delay_minutes(logs),
                most_missed_time_period=most_missed_time_period(logs),
                total_doses=counts.total,
                taken_doses=counts.taken,
                skipped_doses=counts.skipped,
                missed_doses=counts.missed
            )

        if db:
            return _calculate(db)

        with get_db_context() as session:
            return _calculate(session)

    @staticmethod
    def _stat_to_dict(stat: models.DailyAdherenceStat) -> Dict[str, Any]:
        return {
            "patient_id": stat.patient_id,
            "date": stat.date.isoformat(),
            "total_doses": stat.total_doses,
            "taken_doses": stat.taken_doses,
            "adherence_rate": stat.adherence_rate
        }


# Singleton instance
adherence_service = AdherenceService()
