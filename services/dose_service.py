"""
Dose Service
Dose log creation and the one-way pending -> taken/missed/skipped transition
"""

import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, date, time, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc

from config import EngineConfig, engine_config
from database import get_db_context
import models
from models import DoseStatus
from services.medicine_service import MedicineService, medicine_service
from services.patient_service import PatientService, patient_service
from tools.notification_service import NotificationService, NotificationType, notification_service


logger = logging.getLogger(__name__)


class DoseLogNotFoundError(LookupError):
    """Raised when a dose log id does not exist"""


class InvalidDoseTransitionError(ValueError):
    """Raised when a dose that already has a final status is changed again"""


def dose_log_to_dict(log: models.DoseLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "medicine_id": log.medicine_id,
        "patient_id": log.patient_id,
        "scheduled_time": log.scheduled_time.isoformat() if log.scheduled_time else None,
        "taken_at": log.taken_at.isoformat() if log.taken_at else None,
        "status": DoseStatus(log.status).value,
        "notes": log.notes,
        "created_at": log.created_at.isoformat() if log.created_at else None
    }


class DoseService:
    """
    Service for dose logs
    """

    def __init__(
        self,
        medicines: Optional[MedicineService] = None,
        patients: Optional[PatientService] = None,
        notifier: Optional[NotificationService] = None,
        config: Optional[EngineConfig] = None
    ):
        self.medicines = medicines or medicine_service
        self.patients = patients or patient_service
        self.notifier = notifier or notification_service
        self.config = config or engine_config

    def _get_log(self, session: Session, log_id: int) -> models.DoseLog:
        log = session.query(models.DoseLog).filter(models.DoseLog.id == log_id).first()
        if not log:
            raise DoseLogNotFoundError(f"Dose log {log_id} not found")
        return log

    def _ensure_pending(self, log: models.DoseLog):
        status = DoseStatus(log.status)
        if status.is_terminal:
            raise InvalidDoseTransitionError(
                f"Dose log {log.id} is already {status.value}"
            )

    def create_dose_log(
        self,
        session: Session,
        patient_id: int,
        medicine_id: int,
        scheduled_time: datetime
    ) -> models.DoseLog:
        """Create a pending occurrence for one medicine at one moment"""
        medicine = self.medicines.get_medicine(session, medicine_id)
        if medicine.patient_id != patient_id:
            raise ValueError(f"Medicine {medicine_id} does not belong to patient {patient_id}")

        log = models.DoseLog(
            patient_id=patient_id,
            medicine_id=medicine_id,
            scheduled_time=scheduled_time,
            status=DoseStatus.PENDING
        )
        session.add(log)
        session.commit()
        session.refresh(log)
        return log

    def generate_daily_logs(
        self,
        session: Session,
        patient_id: int,
        target_date: Optional[date] = None
    ) -> List[models.DoseLog]:
        """
        Create the pending logs for every configured clock time of every
        medicine on one day. Occurrences that already exist are left alone.
        """
        target = target_date or date.today()
        day_start = datetime.combine(target, time.min)
        day_end = day_start + timedelta(days=1)

        existing = {
            (log.medicine_id, log.scheduled_time)
            for log in session.query(models.DoseLog).filter(
                and_(
                    models.DoseLog.patient_id == patient_id,
                    models.DoseLog.scheduled_time >= day_start,
                    models.DoseLog.scheduled_time < day_end
                )
            ).all()
        }

        created = []
        for medicine in self.medicines.get_medicines_by_patient(session, patient_id):
            for clock in medicine.times_list:
                scheduled = datetime.combine(target, datetime.strptime(clock, "%H:%M").time())
                if (medicine.id, scheduled) in existing:
                    continue
                log = models.DoseLog(
                    patient_id=patient_id,
                    medicine_id=medicine.id,
                    scheduled_time=scheduled,
                    status=DoseStatus.PENDING
                )
                session.add(log)
                created.append(log)

        session.commit()
        logger.info(f"Generated {len(created)} dose logs for patient {patient_id} on {target.isoformat()}")
        return created

    async def mark_taken(
        self,
        log_id: int,
        taken_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Record a dose as taken

        Sets the taken time, takes one dose out of stock and, when stock
        reaches the critical level, notifies the patient and caregivers.

        Args:
            log_id: Dose log ID
            taken_at: When the dose was taken (defaults to now)
            notes: Optional notes
            db: Database session

        Returns:
            The updated dose log as a dict
        """
        async def _mark(session: Session) -> Dict[str, Any]:
            log = self._get_log(session, log_id)
            self._ensure_pending(log)

            log.status = DoseStatus.TAKEN
            log.taken_at = taken_at or datetime.now()
            log.notes = notes or ""

            medicine = log.medicine
            remaining = self.medicines.decrement_stock(session, medicine)
            session.commit()

            logger.info(f"Dose log {log_id} taken; {medicine.name} stock now {remaining}")

            if remaining <= self.config.CRITICAL_STOCK_THRESHOLD:
                await self._notify_low_stock(session, log.patient_id, medicine.name, remaining)

            return dose_log_to_dict(log)

        if db:
            return await _mark(db)

        with get_db_context() as session:
            return await _mark(session)

    async def mark_missed(self, log_id: int, db: Optional[Session] = None) -> Dict[str, Any]:
        """Record a dose as missed"""
        def _mark(session: Session) -> Dict[str, Any]:
            log = self._get_log(session, log_id)
            self._ensure_pending(log)
            log.status = DoseStatus.MISSED
            session.commit()
            logger.info(f"Dose log {log_id} missed")
            return dose_log_to_dict(log)

        if db:
            return _mark(db)

        with get_db_context() as session:
            return _mark(session)

    async def mark_skipped(
        self,
        log_id: int,
        notes: Optional[str] = None,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """Record an intentionally skipped dose"""
        def _mark(session: Session) -> Dict[str, Any]:
            log = self._get_log(session, log_id)
            self._ensure_pending(log)
            log.status = DoseStatus.SKIPPED
            log.notes = notes or "Skipped by user"
            session.commit()
            logger.info(f"Dose log {log_id} skipped")
            return dose_log_to_dict(log)

        if db:
            return _mark(db)

        with get_db_context() as session:
            return _mark(session)

    async def _notify_low_stock(
        self,
        session: Session,
        patient_id: int,
        medicine_name: str,
        stock: int
    ):
        message = (
            f"Medicine stock is finishing. Please refill. "
            f"{medicine_name} has only {stock} remaining."
        )
        await self.notifier.send_instant(
            patient_id, "Medicine Stock Alert", message, NotificationType.STOCK_ALERT
        )

        for caregiver in self.patients.get_linked_caregivers(session, patient_id):
            await self.notifier.send_instant(
                caregiver.id,
                "Caregiver: Medicine Stock Alert",
                f"{message} Patient ID: {patient_id}",
                NotificationType.STOCK_ALERT
            )

    async def get_today_logs(
        self,
        patient_id: int,
        target_date: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """A patient's dose logs for one day, in schedule order"""
        def _get(session: Session) -> List[Dict[str, Any]]:
            day_start = datetime.combine(target_date or date.today(), time.min)
            logs = session.query(models.DoseLog).filter(
                and_(
                    models.DoseLog.patient_id == patient_id,
                    models.DoseLog.scheduled_time >= day_start,
                    models.DoseLog.scheduled_time < day_start + timedelta(days=1)
                )
            ).order_by(models.DoseLog.scheduled_time).all()
            return [dose_log_to_dict(log) for log in logs]

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def get_logs_by_medicine(
        self,
        medicine_id: int,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """All logs of one medicine, newest first"""
        def _get(session: Session) -> List[Dict[str, Any]]:
            logs = session.query(models.DoseLog).filter(
                models.DoseLog.medicine_id == medicine_id
            ).order_by(desc(models.DoseLog.scheduled_time)).all()
            return [dose_log_to_dict(log) for log in logs]

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)


# Singleton instance
dose_service = DoseService()
