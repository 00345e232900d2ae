"""
Trend Engine
Classifies the direction of stored daily adherence and builds patient suggestions
"""

import logging
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
import statistics
from sqlalchemy.orm import Session

from config import EngineConfig, engine_config
from database import get_db_context
from services.aggregation_service import TimeWindowAggregator, time_window_aggregator
from services.adherence_service import AdherenceService, adherence_service
from services.medicine_service import MedicineService, medicine_service
from actions.reminder_engine import ReminderEngine, reminder_engine


logger = logging.getLogger(__name__)


class TrendDirection(str, Enum):
    """Trend direction"""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass
class TrendResult:
    """Trend over the stored daily rates of a window"""
    direction: TrendDirection
    change: float
    points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trend": self.direction.value,
            "change": self.change,
            "points": self.points
        }


def classify_trend(
    rates: Sequence[float],
    min_points: int = 3,
    threshold: float = 10
) -> TrendResult:
    """
    Compare the mean of the last min_points rates with the mean of the first

    Args:
        rates: Daily adherence rates, oldest first
        min_points: Rates needed on each end; fewer overall is stable
        threshold: Change (in percentage points) needed to leave stable

    Returns:
        TrendResult
    """
    if len(rates) < min_points:
        return TrendResult(TrendDirection.STABLE, 0.0, len(rates))

    first = statistics.mean(rates[:min_points])
    last = statistics.mean(rates[-min_points:])
    change = last - first

    if change > threshold:
        direction = TrendDirection.IMPROVING
    elif change < -threshold:
        direction = TrendDirection.DECLINING
    else:
        direction = TrendDirection.STABLE

    return TrendResult(direction, round(change, 1), len(rates))


class TrendEngine:
    """
    Engine for adherence trends and smart suggestions
    """

    def __init__(
        self,
        adherence: Optional[AdherenceService] = None,
        aggregator: Optional[TimeWindowAggregator] = None,
        medicines: Optional[MedicineService] = None,
        reminders: Optional[ReminderEngine] = None,
        config: Optional[EngineConfig] = None
    ):
        self.adherence = adherence or adherence_service
        self.aggregator = aggregator or time_window_aggregator
        self.medicines = medicines or medicine_service
        self.reminders = reminders or reminder_engine
        self.config = config or engine_config

    async def predict_trend(
        self,
        patient_id: int,
        days: int = 7,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> TrendResult:
        """
        Direction of the stored daily rates in the trailing window

        Args:
            patient_id: Patient ID
            days: Days of stored statistics to read
            as_of: Last day of the window, defaults to today
            db: Database session

        Returns:
            TrendResult
        """
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")

        def _predict(session: Session) -> TrendResult:
            stats = self.adherence._sync_daily_stats(session, patient_id, days, as_of)
            return classify_trend(
                [s.adherence_rate for s in stats],
                self.config.TREND_MIN_POINTS,
                self.config.TREND_CHANGE_THRESHOLD
            )

        if db:
            result = _predict(db)
        else:
            with get_db_context() as session:
                result = _predict(session)

        logger.info(f"Adherence trend for patient {patient_id}: {result.direction.value}")
        return result

    def _suggestions(
        self,
        session: Session,
        patient_id: int,
        as_of: Optional[date] = None
    ) -> List[str]:
        suggestions = []

        missed_today = self.aggregator.count_window(session, patient_id, 0, as_of).missed
        if missed_today > 0:
            suggestions.append(
                f"You have {missed_today} missed dose(s) today. "
                f"Try to take your medicines on time."
            )

        stats = self.adherence._sync_daily_stats(
            session, patient_id, self.config.WEEKLY_WINDOW_DAYS, as_of
        )
        if stats:
            weekly_average = statistics.mean(s.adherence_rate for s in stats)
            threshold = self.config.SUGGESTION_ADHERENCE_THRESHOLD
            if weekly_average < threshold:
                suggestions.append(
                    f"Your weekly adherence is below {threshold:g}%. "
                    f"Consider setting reminders to improve your medication routine."
                )

        low_stock = len(self.medicines.get_low_stock_medicines(session, patient_id))
        if low_stock > 0:
            suggestions.append(
                f"You have {low_stock} medicine(s) with low stock. Please refill soon."
            )

        summary = self.reminders._sync_timing_summary(session, patient_id, as_of)
        if summary.medicines_with_adaptive_timing > 0:
            suggestions.append(
                f"Adaptive timing is now active for {summary.medicines_with_adaptive_timing} "
                f"medicine(s). Your reminders are now personalized!"
            )
        elif summary.medicines_pending_data > 0:
            suggestions.append(
                f"Keep taking your medicines to unlock adaptive reminders! "
                f"{summary.medicines_pending_data} more medicine(s) need more data."
            )

        return suggestions

    async def get_smart_suggestions(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[str]:
        """Short suggestions for the patient's home screen"""
        if db:
            return self._suggestions(db, patient_id, as_of)

        with get_db_context() as session:
            return self._suggestions(session, patient_id, as_of)


# Singleton instance
trend_engine = TrendEngine()
