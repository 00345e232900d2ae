"""
Tests for Adherence Service
Tests adherence rates, daily statistics and the composite adherence report
"""

import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock
from datetime import date, timedelta

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import EngineConfig
from models import DailyAdherenceStat, DoseStatus
from services.adherence_service import (
    AdherenceService,
    NO_MISSES,
    average_delay_minutes,
    most_missed_time_period,
    time_period_for_hour,
)
from tests.helpers import at


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def adherence_service():
    """Create adherence service instance"""
    return AdherenceService()


# =============================================================================
# Pure Helpers
# =============================================================================

class TestTimePeriods:
    """Test time-of-day buckets"""

    @pytest.mark.unit
    @pytest.mark.parametrize("hour,expected", [
        (6, "Morning"), (11, "Morning"),
        (12, "Afternoon"), (17, "Afternoon"),
        (18, "Evening"), (23, "Evening"),
        (0, "Night"), (5, "Night"),
    ])
    def test_bucket_edges(self, hour, expected):
        assert time_period_for_hour(hour) == expected

    @pytest.mark.unit
    def test_no_misses_sentinel(self, today):
        logs = [SimpleNamespace(id=1, status=DoseStatus.TAKEN, scheduled_time=at(today, 8))]
        assert most_missed_time_period(logs) == NO_MISSES

    @pytest.mark.unit
    def test_skipped_doses_count_as_missed(self, today):
        logs = [
            SimpleNamespace(id=1, status=DoseStatus.SKIPPED, scheduled_time=at(today, 20)),
            SimpleNamespace(id=2, status=DoseStatus.MISSED, scheduled_time=at(today, 21)),
            SimpleNamespace(id=3, status=DoseStatus.MISSED, scheduled_time=at(today, 8)),
        ]
        assert most_missed_time_period(logs) == "Evening"

    @pytest.mark.unit
    def test_tie_keeps_earlier_period(self, today):
        logs = [
            SimpleNamespace(id=1, status=DoseStatus.MISSED, scheduled_time=at(today, 2)),
            SimpleNamespace(id=2, status=DoseStatus.MISSED, scheduled_time=at(today, 14)),
        ]
        # Afternoon is checked before Night
        assert most_missed_time_period(logs) == "Afternoon"

    @pytest.mark.unit
    def test_malformed_scheduled_time_skipped(self, today):
        logs = [
            SimpleNamespace(id=1, status=DoseStatus.MISSED, scheduled_time="garbage"),
            SimpleNamespace(id=2, status=DoseStatus.MISSED, scheduled_time=at(today, 9)),
        ]
        assert most_missed_time_period(logs) == "Morning"


class TestAverageDelay:
    """Test average lateness of taken doses"""

    @pytest.mark.unit
    def test_only_late_doses_count(self, today):
        logs = [
            SimpleNamespace(id=1, status=DoseStatus.TAKEN, scheduled_time=at(today, 8), taken_at=at(today, 8, 10)),
            SimpleNamespace(id=2, status=DoseStatus.TAKEN, scheduled_time=at(today, 12), taken_at=at(today, 12, 21)),
            SimpleNamespace(id=3, status=DoseStatus.TAKEN, scheduled_time=at(today, 20), taken_at=at(today, 19, 30)),
        ]
        # (10 + 21) / 2 = 15.5
        assert average_delay_minutes(logs) == 16

    @pytest.mark.unit
    def test_no_late_doses(self, today):
        logs = [
            SimpleNamespace(id=1, status=DoseStatus.TAKEN, scheduled_time=at(today, 8), taken_at=at(today, 7, 50)),
            SimpleNamespace(id=2, status=DoseStatus.MISSED, scheduled_time=at(today, 20), taken_at=None),
        ]
        assert average_delay_minutes(logs) == 0

    @pytest.mark.unit
    def test_malformed_timestamps_skipped(self, today):
        logs = [
            SimpleNamespace(id=1, status=DoseStatus.TAKEN, scheduled_time=at(today, 8), taken_at="not-a-time"),
            SimpleNamespace(id=2, status=DoseStatus.TAKEN, scheduled_time=at(today, 8), taken_at=at(today, 8, 6)),
        ]
        assert average_delay_minutes(logs) == 6

    @pytest.mark.asyncio
    @pytest.mark.database
    async def test_unreadable_stored_timestamp_skipped(
        self, adherence_service, db_session: Session, test_medicine, make_log, today
    ):
        for offset in range(1, 5):
            make_log(test_medicine, at(today - timedelta(days=offset), 8), delay=6)
        make_log(test_medicine, at(today, 8), delay=6)
        broken = make_log(test_medicine, at(today, 20), delay=45)

        db_session.execute(
            text("UPDATE dose_logs SET taken_at = 'garbage' WHERE id = :id"), {"id": broken.id}
        )
        db_session.commit()

        details = await adherence_service.get_adherence_details(
            test_medicine.patient_id, today, db=db_session
        )

        assert details.total_doses == 6
        assert details.taken_doses == 6
        assert details.adherence_percentage == 100
        assert details.average_delay_time == 6


# =============================================================================
# Rates
# =============================================================================

class TestAdherenceRates:
    """Test window rates"""

    @pytest.mark.asyncio
    async def test_empty_history_is_100(self, adherence_service, db_session: Session, test_patient, today):
        assert await adherence_service.get_today_rate(test_patient.id, today, db=db_session) == 100
        assert await adherence_service.get_weekly_rate(test_patient.id, today, db=db_session) == 100
        assert await adherence_service.get_monthly_rate(test_patient.id, today, db=db_session) == 100

    @pytest.mark.asyncio
    async def test_weekly_rate(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8))
        make_log(test_medicine, at(today - timedelta(days=3), 8))
        make_log(test_medicine, at(today - timedelta(days=7), 8), status=DoseStatus.MISSED)
        make_log(test_medicine, at(today - timedelta(days=8), 8), status=DoseStatus.MISSED)  # outside

        rate = await adherence_service.get_weekly_rate(test_medicine.patient_id, today, db=db_session)

        assert rate == 67

    @pytest.mark.asyncio
    async def test_today_rate_ignores_other_days(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8), status=DoseStatus.MISSED)
        make_log(test_medicine, at(today - timedelta(days=1), 8))

        rate = await adherence_service.get_today_rate(test_medicine.patient_id, today, db=db_session)

        assert rate == 0

    @pytest.mark.asyncio
    async def test_window_rate_result(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8))
        make_log(test_medicine, at(today, 20), status=DoseStatus.PENDING, delay=None)

        result = await adherence_service.get_window_rate(test_medicine.patient_id, 0, today, db=db_session)

        assert result["days"] == 0
        assert result["total"] == 2
        assert result["pending"] == 1
        assert result["adherence_rate"] == 50


# =============================================================================
# Daily Statistics
# =============================================================================

class TestDailyStats:
    """Test the daily statistic upsert"""

    @pytest.mark.asyncio
    async def test_upsert_creates_row(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8))
        make_log(test_medicine, at(today, 12))
        make_log(test_medicine, at(today, 20), status=DoseStatus.MISSED)

        stat = await adherence_service.upsert_daily_stat(test_medicine.patient_id, today, db=db_session)

        assert stat["date"] == today.isoformat()
        assert stat["total_doses"] == 3
        assert stat["taken_doses"] == 2
        assert stat["adherence_rate"] == pytest.approx(200 / 3)

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8))

        first = await adherence_service.upsert_daily_stat(test_medicine.patient_id, today, db=db_session)
        second = await adherence_service.upsert_daily_stat(test_medicine.patient_id, today, db=db_session)

        rows = db_session.query(DailyAdherenceStat).filter(
            DailyAdherenceStat.patient_id == test_medicine.patient_id
        ).all()
        assert len(rows) == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_upsert_replaces_values(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8))
        await adherence_service.upsert_daily_stat(test_medicine.patient_id, today, db=db_session)

        make_log(test_medicine, at(today, 20), status=DoseStatus.MISSED)
        stat = await adherence_service.upsert_daily_stat(test_medicine.patient_id, today, db=db_session)

        assert stat["total_doses"] == 2
        assert stat["adherence_rate"] == 50.0

    @pytest.mark.asyncio
    async def test_upsert_empty_day(self, adherence_service, db_session, test_patient, today):
        stat = await adherence_service.upsert_daily_stat(test_patient.id, today, db=db_session)

        assert stat["total_doses"] == 0
        assert stat["adherence_rate"] == 100.0

    @pytest.mark.asyncio
    async def test_daily_stats_oldest_first(self, adherence_service, db_session, test_patient, make_stat, today):
        for offset, rate in [(2, 50.0), (0, 100.0), (1, 75.0), (10, 10.0)]:
            make_stat(test_patient, today - timedelta(days=offset), rate)

        stats = await adherence_service.get_daily_stats(test_patient.id, days=7, as_of=today, db=db_session)

        assert [s["adherence_rate"] for s in stats] == [50.0, 75.0, 100.0]


# =============================================================================
# Adherence Details
# =============================================================================

class TestAdherenceDetails:
    """Test the composite report"""

    @pytest.mark.asyncio
    async def test_details_empty(self, adherence_service, db_session, test_patient, today):
        details = await adherence_service.get_adherence_details(test_patient.id, today, db=db_session)

        assert details.adherence_percentage == 100
        assert details.skip_rate == 0
        assert details.missed_count == 0
        assert details.average_delay_time == 0
        assert details.most_missed_time_period == NO_MISSES

    @pytest.mark.asyncio
    async def test_details_counts(self, adherence_service, db_session, test_medicine, make_log, today):
        make_log(test_medicine, at(today, 8), delay=20)
        make_log(test_medicine, at(today - timedelta(days=1), 8), delay=10)
        make_log(test_medicine, at(today - timedelta(days=2), 20), status=DoseStatus.MISSED)
        make_log(test_medicine, at(today - timedelta(days=20), 21), status=DoseStatus.SKIPPED, delay=None)
        make_log(test_medicine, at(today - timedelta(days=40), 8), status=DoseStatus.MISSED)  # outside

        details = await adherence_service.get_adherence_details(test_medicine.patient_id, today, db=db_session)

        assert details.total_doses == 4
        assert details.taken_doses == 2
        assert details.adherence_percentage == 50
        assert details.skip_rate == 25
        assert details.missed_count == 1
        assert details.weekly_adherence == 67
        assert details.average_delay_time == 15
        assert details.most_missed_time_period == "Evening"
        assert details.to_dict()["skipped_doses"] == 1

    @pytest.mark.asyncio
    async def test_custom_config_windows(self, db_session, test_medicine, make_log, today):
        service = AdherenceService(config=EngineConfig(WEEKLY_WINDOW_DAYS=1))
        make_log(test_medicine, at(today - timedelta(days=3), 8), status=DoseStatus.MISSED)
        make_log(test_medicine, at(today, 8))

        assert await service.get_weekly_rate(test_medicine.patient_id, today, db=db_session) == 100


# =============================================================================
# Store Failures
# =============================================================================

class TestStoreFailures:
    """A failing store is reported, never read as a perfect score"""

    @pytest.mark.asyncio
    async def test_weekly_rate_propagates_store_error(self, adherence_service, today):
        session = MagicMock(spec=Session)
        session.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))

        with pytest.raises(SQLAlchemyError):
            await adherence_service.get_weekly_rate(1, today, db=session)
