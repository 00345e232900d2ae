"""
Reminder Engine
Adaptive reminder timing learned from how late a patient takes each medicine
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from dataclasses import dataclass, asdict
from datetime import datetime, date, time, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc

from config import EngineConfig, engine_config
from database import get_db_context
import models
from models import DoseStatus
from services.aggregation_service import (
    TimeWindowAggregator,
    delay_minutes,
    ensure_datetime,
    round_half_up,
    time_window_aggregator,
)
from services.medicine_service import MedicineService, medicine_service
from tools.notification_service import NotificationService


logger = logging.getLogger(__name__)


def parse_clock_time(value: Union[str, time, datetime]) -> time:
    """Accept "HH:MM", "HH:MM:SS", a time or a datetime"""
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, str):
        for fmt in ("%H:%M", "%H:%M:%S"):
            try:
                return datetime.strptime(value.strip(), fmt).time().replace(second=0)
            except ValueError:
                continue
        parsed = ensure_datetime(value)
        if parsed is not None:
            return parsed.time().replace(second=0, microsecond=0)
    raise ValueError(f"Cannot parse scheduled time: {value!r}")


def shift_clock_time(clock: time, minutes: int) -> str:
    """Add minutes to a clock time and render it as HH:MM, wrapping at midnight"""
    shifted = datetime.combine(date.today(), clock) + timedelta(minutes=minutes)
    return shifted.strftime("%H:%M")


@dataclass
class AdaptiveTimeInfo:
    """Reminder time for one scheduled clock time"""
    scheduled_time: str
    adaptive_time: str
    mean_delay: int
    is_adaptive: bool
    days_analyzed: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TimePattern:
    """When a patient actually takes a medicine"""
    average_taken_hour: int
    average_taken_minute: int
    deviation: float  # mean absolute minutes from schedule

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AdaptiveTimingSummary:
    """Adaptive timing status across a patient's medicines"""
    medicines_with_adaptive_timing: int
    medicines_pending_data: int
    overall_average_delay: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReminderEngine:
    """
    Engine for adaptive medication reminders

    Responsibilities:
    - Measure how late each medicine is usually taken
    - Shift reminder times once enough history exists
    - Summarize adaptive timing across a patient's medicines
    - Hand the resulting times to the reminder scheduler
    """

    def __init__(
        self,
        aggregator: Optional[TimeWindowAggregator] = None,
        medicines: Optional[MedicineService] = None,
        config: Optional[EngineConfig] = None
    ):
        self.aggregator = aggregator or time_window_aggregator
        self.medicines = medicines or medicine_service
        self.config = config or engine_config

    def compute_mean_delay(self, logs: Iterable[Any]) -> Tuple[int, int]:
        """
        Mean delay over taken logs.

        Only late doses add to the sum but every analyzed log counts in the
        divisor, so punctual or early doses pull the mean toward zero.

        Returns:
            (mean_delay_minutes, days_analyzed)
        """
        total_delay = 0.0
        analyzed = 0

        for log in logs:
            delay = delay_minutes(log)
            if delay is None:
                logger.warning(f"Skipping dose log {getattr(log, 'id', None)} with unusable timestamps")
                continue
            analyzed += 1
            if delay > 0:
                total_delay += delay

        if analyzed < self.config.MIN_DAYS_FOR_ADAPTIVE:
            return 0, analyzed

        return round_half_up(total_delay / analyzed), analyzed

    def _sync_mean_delay(
        self,
        session: Session,
        patient_id: int,
        medicine_id: int,
        as_of: Optional[date] = None
    ) -> Tuple[int, int]:
        logs = self.aggregator.fetch_logs(
            session,
            patient_id,
            self.config.ADAPTIVE_WINDOW_DAYS,
            as_of,
            medicine_id=medicine_id,
            status=DoseStatus.TAKEN
        )
        return self.compute_mean_delay(log for log in logs if log.taken_at is not None)

    async def calculate_mean_delay(
        self,
        patient_id: int,
        medicine_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> Tuple[int, int]:
        """Mean delay and number of taken logs analyzed in the adaptive window"""
        if db:
            return self._sync_mean_delay(db, patient_id, medicine_id, as_of)

        with get_db_context() as session:
            return self._sync_mean_delay(session, patient_id, medicine_id, as_of)

    def _build_info(self, scheduled_time, mean_delay: int, days_analyzed: int) -> AdaptiveTimeInfo:
        clock = parse_clock_time(scheduled_time)
        return AdaptiveTimeInfo(
            scheduled_time=clock.strftime("%H:%M"),
            adaptive_time=shift_clock_time(clock, mean_delay),
            mean_delay=mean_delay,
            is_adaptive=days_analyzed >= self.config.MIN_DAYS_FOR_ADAPTIVE,
            days_analyzed=days_analyzed
        )

    async def get_adaptive_reminder_time(
        self,
        patient_id: int,
        medicine_id: int,
        scheduled_time: Union[str, time, datetime],
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> AdaptiveTimeInfo:
        """
        Reminder time for one scheduled clock time

        Example: scheduled 12:30 with a mean delay of 4 minutes -> 12:34

        Args:
            patient_id: Patient ID
            medicine_id: Medicine ID
            scheduled_time: Clock time the dose is scheduled for
            as_of: Last day of the analysis window, defaults to today
            db: Database session

        Returns:
            AdaptiveTimeInfo
        """
        mean_delay, days_analyzed = await self.calculate_mean_delay(
            patient_id, medicine_id, as_of, db=db
        )
        return self._build_info(scheduled_time, mean_delay, days_analyzed)

    async def get_all_adaptive_reminder_times(
        self,
        patient_id: int,
        medicine: models.Medicine,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[AdaptiveTimeInfo]:
        """Adaptive time for every configured clock time of a medicine"""
        mean_delay, days_analyzed = await self.calculate_mean_delay(
            patient_id, medicine.id, as_of, db=db
        )
        return [
            self._build_info(clock, mean_delay, days_analyzed)
            for clock in medicine.times_list
        ]

    async def is_adaptive_timing_available(
        self,
        patient_id: int,
        medicine_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> bool:
        _, days_analyzed = await self.calculate_mean_delay(patient_id, medicine_id, as_of, db=db)
        return days_analyzed >= self.config.MIN_DAYS_FOR_ADAPTIVE

    def _sync_timing_summary(
        self,
        session: Session,
        patient_id: int,
        as_of: Optional[date] = None
    ) -> AdaptiveTimingSummary:
        adaptive_count = 0
        pending_count = 0
        delays = []

        for medicine in self.medicines.get_medicines_by_patient(session, patient_id):
            mean_delay, days_analyzed = self._sync_mean_delay(session, patient_id, medicine.id, as_of)
            if days_analyzed >= self.config.MIN_DAYS_FOR_ADAPTIVE:
                adaptive_count += 1
                delays.append(mean_delay)
            else:
                pending_count += 1

        return AdaptiveTimingSummary(
            medicines_with_adaptive_timing=adaptive_count,
            medicines_pending_data=pending_count,
            overall_average_delay=round_half_up(sum(delays) / len(delays)) if delays else 0
        )

    async def get_adaptive_timing_summary(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> AdaptiveTimingSummary:
        """How many medicines have adaptive timing and their mean delay"""
        if db:
            return self._sync_timing_summary(db, patient_id, as_of)

        with get_db_context() as session:
            return self._sync_timing_summary(session, patient_id, as_of)

    async def analyze_time_patterns(
        self,
        patient_id: int,
        medicine_id: int,
        db: Optional[Session] = None
    ) -> Optional[TimePattern]:
        """Average clock time at which recent doses were actually taken"""
        def _analyze(session: Session) -> Optional[TimePattern]:
            logs = session.query(models.DoseLog).filter(
                and_(
                    models.DoseLog.patient_id == patient_id,
                    models.DoseLog.medicine_id == medicine_id,
                    models.DoseLog.status == DoseStatus.TAKEN,
                    models.DoseLog.taken_at.isnot(None)
                )
            ).order_by(desc(models.DoseLog.taken_at)).limit(self.config.PATTERN_SAMPLE_SIZE).all()

            minutes_of_day = []
            deviations = []
            for log in logs:
                taken = ensure_datetime(log.taken_at)
                delay = delay_minutes(log)
                if taken is None or delay is None:
                    continue
                minutes_of_day.append(taken.hour * 60 + taken.minute)
                deviations.append(abs(delay))

            if len(minutes_of_day) < self.config.MIN_DAYS_FOR_ADAPTIVE:
                return None

            average = int(sum(minutes_of_day) / len(minutes_of_day))
            return TimePattern(
                average_taken_hour=average // 60,
                average_taken_minute=average % 60,
                deviation=round(sum(deviations) / len(deviations), 1)
            )

        if db:
            return _analyze(db)

        with get_db_context() as session:
            return _analyze(session)

    async def get_optimal_reminder_times(
        self,
        patient_id: int,
        medicine_id: int,
        db: Optional[Session] = None
    ) -> List[str]:
        pattern = await self.analyze_time_patterns(patient_id, medicine_id, db=db)
        if not pattern:
            return []
        return [f"{pattern.average_taken_hour:02d}:{pattern.average_taken_minute:02d}"]

    async def schedule_adaptive_reminders(
        self,
        patient_id: int,
        medicine: models.Medicine,
        scheduler: NotificationService,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[str]:
        """
        Register one daily trigger per clock time of a medicine at its
        adaptive time

        Returns:
            Scheduler handles, in the medicine's clock-time order
        """
        infos = await self.get_all_adaptive_reminder_times(patient_id, medicine, as_of, db=db)

        handles = []
        for index, info in enumerate(infos):
            clock = parse_clock_time(info.adaptive_time)
            handle = scheduler.schedule_daily(
                clock.hour,
                clock.minute,
                title="Medicine Reminder",
                body=f"Time to take {medicine.name} - {medicine.dosage}",
                payload={
                    "medicine_id": medicine.id,
                    "time_index": index,
                    "scheduled_time": info.scheduled_time,
                    "is_adaptive": info.is_adaptive
                }
            )
            handles.append(handle)

        logger.info(
            f"Scheduled {len(handles)} reminders for medicine {medicine.id} "
            f"of patient {patient_id}"
        )
        return handles


# Singleton instance
reminder_engine = ReminderEngine()
