"""
Alert Engine
Derives caregiver and doctor alerts from stock, missed doses and weekly adherence
"""

import logging
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from enum import Enum
from sqlalchemy.orm import Session
from sqlalchemy import and_, func

from config import EngineConfig, engine_config
from database import get_db_context
import models
from models import DoseStatus
from services.aggregation_service import TimeWindowAggregator, time_window_aggregator, window_bounds
from services.adherence_service import AdherenceService, adherence_service
from services.medicine_service import MedicineService, medicine_service
from services.patient_service import PatientService, patient_service


logger = logging.getLogger(__name__)


class AlertSeverity(str, Enum):
    """Alert severity levels"""
    WARNING = "warning"
    CRITICAL = "critical"


class AlertType(str, Enum):
    """Types of alerts"""
    MISSED_3_TIMES = "missed_3_times"
    LOW_STOCK = "low_stock"
    LOW_ADHERENCE = "low_adherence"


SEVERITY_ORDER = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.WARNING: 1
}


@dataclass
class Alert:
    """Alert data structure"""
    id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    medicine_id: Optional[int] = None
    medicine_name: Optional[str] = None
    patient_id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.alert_type.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "medicine_id": self.medicine_id,
            "medicine_name": self.medicine_name,
            "patient_id": self.patient_id,
            "created_at": self.created_at.isoformat()
        }


@dataclass
class CaregiverAlerts:
    """Alerts for one patient plus the counts shown on summary screens"""
    alerts: List[Alert]
    missed_count: int
    low_stock_count: int
    low_adherence: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alerts": [a.to_dict() for a in self.alerts],
            "missed_count": self.missed_count,
            "low_stock_count": self.low_stock_count,
            "low_adherence": self.low_adherence
        }


@dataclass
class DoctorAlerts:
    """Alerts across a doctor's panel"""
    alerts: List[Alert]
    patients_with_low_adherence: int
    patients_with_missed_medicines: int
    total_alerts: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alerts": [a.to_dict() for a in self.alerts],
            "patients_with_low_adherence": self.patients_with_low_adherence,
            "patients_with_missed_medicines": self.patients_with_missed_medicines,
            "total_alerts": self.total_alerts
        }


def sort_alerts(alerts: List[Alert]) -> List[Alert]:
    """Critical first; equal severities keep their emission order"""
    return sorted(alerts, key=lambda a: SEVERITY_ORDER[a.severity])


class AlertEngine:
    """
    Engine for deriving medication adherence alerts

    Alerts are recomputed from the store on every call and carry ids built
    from their source and subject, so repeated evaluations line up.
    """

    def __init__(
        self,
        adherence: Optional[AdherenceService] = None,
        aggregator: Optional[TimeWindowAggregator] = None,
        medicines: Optional[MedicineService] = None,
        patients: Optional[PatientService] = None,
        config: Optional[EngineConfig] = None
    ):
        self.adherence = adherence or adherence_service
        self.aggregator = aggregator or time_window_aggregator
        self.medicines = medicines or medicine_service
        self.patients = patients or patient_service
        self.config = config or engine_config

    def stock_severity(self, stock: int) -> Optional[AlertSeverity]:
        """Severity of a stock level, None when stock is sufficient"""
        if stock <= self.config.CRITICAL_STOCK_THRESHOLD:
            return AlertSeverity.CRITICAL
        if stock <= self.config.LOW_STOCK_THRESHOLD:
            return AlertSeverity.WARNING
        return None

    def _missed_counts(
        self,
        session: Session,
        patient_id: int,
        as_of: Optional[date] = None
    ) -> Dict[int, int]:
        """Missed doses per medicine over the missed-dose window"""
        start, end = window_bounds(self.config.MISSED_WINDOW_DAYS, as_of)

        rows = session.query(
            models.DoseLog.medicine_id,
            func.count(models.DoseLog.id)
        ).filter(
            and_(
                models.DoseLog.patient_id == patient_id,
                models.DoseLog.status == DoseStatus.MISSED,
                models.DoseLog.scheduled_time >= start,
                models.DoseLog.scheduled_time < end
            )
        ).group_by(models.DoseLog.medicine_id).all()

        return {medicine_id: count for medicine_id, count in rows}

    def _repeatedly_missed(
        self,
        session: Session,
        patient_id: int,
        as_of: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        counts = self._missed_counts(session, patient_id, as_of)
        result = []
        for medicine in self.medicines.get_medicines_by_patient(session, patient_id):
            missed = counts.get(medicine.id, 0)
            if missed >= self.config.MISSED_ALERT_THRESHOLD:
                result.append({
                    "medicine_id": medicine.id,
                    "medicine_name": medicine.name,
                    "missed_count": missed
                })
        return result

    async def get_missed_count_by_medicine(
        self,
        medicine_id: int,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> int:
        """Missed doses of one medicine in the missed-dose window"""
        def _get(session: Session) -> int:
            return self._missed_counts(session, patient_id, as_of).get(medicine_id, 0)

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def get_medicines_missed_repeatedly(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Medicines missed at least the alert threshold number of times"""
        if db:
            return self._repeatedly_missed(db, patient_id, as_of)

        with get_db_context() as session:
            return self._repeatedly_missed(session, patient_id, as_of)

    def _caregiver_alerts(
        self,
        session: Session,
        patient_id: int,
        as_of: Optional[date] = None
    ) -> CaregiverAlerts:
        now = datetime.now(timezone.utc)
        alerts: List[Alert] = []

        # 1. Medicines missed repeatedly
        missed = self._repeatedly_missed(session, patient_id, as_of)
        for item in missed:
            alerts.append(Alert(
                id=f"missed_{item['medicine_id']}",
                alert_type=AlertType.MISSED_3_TIMES,
                severity=AlertSeverity.CRITICAL,
                title="Missed Medicine Alert",
                message=(
                    f"{item['medicine_name']} has been missed {item['missed_count']} times "
                    f"in the last {self.config.MISSED_WINDOW_DAYS} days"
                ),
                medicine_id=item["medicine_id"],
                medicine_name=item["medicine_name"],
                patient_id=patient_id,
                created_at=now
            ))

        # 2. Low stock
        low_stock_count = 0
        for medicine in self.medicines.get_medicines_by_patient(session, patient_id):
            severity = self.stock_severity(medicine.stock)
            if severity is None:
                continue
            low_stock_count += 1
            alerts.append(Alert(
                id=f"low_stock_{medicine.id}",
                alert_type=AlertType.LOW_STOCK,
                severity=severity,
                title="Low Stock Alert",
                message=f"{medicine.name} has only {medicine.stock} doses remaining",
                medicine_id=medicine.id,
                medicine_name=medicine.name,
                patient_id=patient_id,
                created_at=now
            ))

        # 3. Weekly adherence
        weekly = self.adherence._sync_weekly_rate(session, patient_id, as_of)
        low_adherence = weekly < self.config.LOW_ADHERENCE_THRESHOLD
        if low_adherence:
            alerts.append(Alert(
                id="low_adherence",
                alert_type=AlertType.LOW_ADHERENCE,
                severity=AlertSeverity.CRITICAL,
                title="Low Adherence Alert",
                message=(
                    f"Weekly adherence is {weekly}%. This is below the "
                    f"{self.config.LOW_ADHERENCE_THRESHOLD:g}% threshold."
                ),
                patient_id=patient_id,
                created_at=now
            ))

        return CaregiverAlerts(
            alerts=sort_alerts(alerts),
            missed_count=len(missed),
            low_stock_count=low_stock_count,
            low_adherence=low_adherence
        )

    async def get_caregiver_alerts(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> CaregiverAlerts:
        """
        All alerts for one patient, as seen by the patient and caregivers

        Args:
            patient_id: Patient ID
            as_of: Last day of the evaluation windows, defaults to today
            db: Database session

        Returns:
            CaregiverAlerts with alerts sorted critical first
        """
        if db:
            result = self._caregiver_alerts(db, patient_id, as_of)
        else:
            with get_db_context() as session:
                result = self._caregiver_alerts(session, patient_id, as_of)

        logger.info(f"Derived {len(result.alerts)} alerts for patient {patient_id}")
        return result

    async def has_critical_alerts(
        self,
        patient_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> bool:
        result = await self.get_caregiver_alerts(patient_id, as_of, db=db)
        return any(a.severity == AlertSeverity.CRITICAL for a in result.alerts)

    def _doctor_alerts(
        self,
        session: Session,
        doctor_id: int,
        as_of: Optional[date] = None
    ) -> DoctorAlerts:
        now = datetime.now(timezone.utc)
        alerts: List[Alert] = []
        patients_with_low_adherence = 0
        patients_with_missed_medicines = 0

        for patient in self.patients.get_patients_by_doctor(session, doctor_id):
            weekly = self.adherence._sync_weekly_rate(session, patient.id, as_of)

            if weekly < self.config.LOW_ADHERENCE_THRESHOLD:
                patients_with_low_adherence += 1
                alerts.append(Alert(
                    id=f"low_adherence_{patient.id}",
                    alert_type=AlertType.LOW_ADHERENCE,
                    severity=AlertSeverity.CRITICAL,
                    title="Low Adherence Alert",
                    message=(
                        f"{patient.name}'s weekly adherence is {weekly}%. This is below the "
                        f"{self.config.LOW_ADHERENCE_THRESHOLD:g}% threshold."
                    ),
                    patient_id=patient.id,
                    created_at=now
                ))
            elif weekly < self.config.MEDIUM_ADHERENCE_THRESHOLD:
                alerts.append(Alert(
                    id=f"medium_adherence_{patient.id}",
                    alert_type=AlertType.LOW_ADHERENCE,
                    severity=AlertSeverity.WARNING,
                    title="Medium Adherence Alert",
                    message=f"{patient.name}'s weekly adherence is {weekly}%. Consider monitoring closely.",
                    patient_id=patient.id,
                    created_at=now
                ))

            missed = self._repeatedly_missed(session, patient.id, as_of)
            if missed:
                patients_with_missed_medicines += 1
            for item in missed:
                alerts.append(Alert(
                    id=f"missed_{item['medicine_id']}_{patient.id}",
                    alert_type=AlertType.MISSED_3_TIMES,
                    severity=AlertSeverity.CRITICAL,
                    title="Repeated Missed Medicine",
                    message=(
                        f"{patient.name} has missed {item['medicine_name']} {item['missed_count']} "
                        f"times in the last {self.config.MISSED_WINDOW_DAYS} days."
                    ),
                    medicine_id=item["medicine_id"],
                    medicine_name=item["medicine_name"],
                    patient_id=patient.id,
                    created_at=now
                ))

        alerts = sort_alerts(alerts)
        return DoctorAlerts(
            alerts=alerts,
            patients_with_low_adherence=patients_with_low_adherence,
            patients_with_missed_medicines=patients_with_missed_medicines,
            total_alerts=len(alerts)
        )

    async def get_doctor_alerts(
        self,
        doctor_id: int,
        as_of: Optional[date] = None,
        db: Optional[Session] = None
    ) -> DoctorAlerts:
        """Alerts for every patient linked to a doctor"""
        if db:
            result = self._doctor_alerts(db, doctor_id, as_of)
        else:
            with get_db_context() as session:
                result = self._doctor_alerts(session, doctor_id, as_of)

        logger.info(f"Derived {result.total_alerts} alerts for doctor {doctor_id}")
        return result


# Singleton instance
alert_engine = AlertEngine()
