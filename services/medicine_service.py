"""
Medicine Service
Medicine records and stock levels
"""

import logging
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc

from config import EngineConfig, engine_config
from database import get_db_context
import models


logger = logging.getLogger(__name__)


class MedicineNotFoundError(LookupError):
    """Raised when a medicine id does not exist"""


def parse_clock_times(times: List[str]) -> List[str]:
    """Validate and normalize a list of HH:MM clock times"""
    normalized = []
    for value in times:
        try:
            parsed = datetime.strptime(value.strip(), "%H:%M")
        except (AttributeError, ValueError):
            raise ValueError(f"Invalid clock time: {value!r}")
        normalized.append(parsed.strftime("%H:%M"))
    return normalized


class MedicineService:
    """
    Service for medicine records
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or engine_config

    def add_medicine(
        self,
        session: Session,
        patient_id: int,
        name: str,
        dosage: str,
        frequency: str,
        times: List[str],
        stock: int = 0,
        instructions: Optional[str] = None
    ) -> models.Medicine:
        """
        Add a medicine for a patient

        Args:
            session: Database session
            patient_id: Patient ID
            name: Medicine name
            dosage: Dosage (e.g., "500mg")
            frequency: Frequency label (e.g., "twice daily")
            times: Daily clock times, "HH:MM"
            stock: Doses on hand
            instructions: Special instructions

        Returns:
            Created Medicine object
        """
        if stock < 0:
            raise ValueError("Stock cannot be negative")

        medicine = models.Medicine(
            patient_id=patient_id,
            name=name,
            dosage=dosage,
            frequency=frequency,
            times=parse_clock_times(times),
            stock=stock,
            instructions=instructions
        )
        session.add(medicine)
        session.commit()
        session.refresh(medicine)

        logger.info(f"Added medicine {medicine.name} for patient {patient_id}")
        return medicine

    def get_medicine(self, session: Session, medicine_id: int) -> models.Medicine:
        medicine = session.query(models.Medicine).filter(
            models.Medicine.id == medicine_id
        ).first()
        if not medicine:
            raise MedicineNotFoundError(f"Medicine {medicine_id} not found")
        return medicine

    def get_medicines_by_patient(self, session: Session, patient_id: int) -> List[models.Medicine]:
        """Patient's medicines, newest first"""
        return session.query(models.Medicine).filter(
            models.Medicine.patient_id == patient_id
        ).order_by(desc(models.Medicine.created_at), desc(models.Medicine.id)).all()

    def update_stock(self, session: Session, medicine_id: int, stock: int) -> models.Medicine:
        if stock < 0:
            raise ValueError("Stock cannot be negative")
        medicine = self.get_medicine(session, medicine_id)
        medicine.stock = stock
        session.commit()
        return medicine

    def decrement_stock(self, session: Session, medicine: models.Medicine) -> int:
        """Take one dose out of stock, never below zero. Caller commits."""
        medicine.stock = max((medicine.stock or 0) - 1, 0)
        return medicine.stock

    def delete_medicine(self, session: Session, medicine_id: int) -> None:
        """Delete a medicine together with its dose logs"""
        medicine = self.get_medicine(session, medicine_id)
        session.delete(medicine)
        session.commit()
        logger.info(f"Deleted medicine {medicine_id} and its dose logs")

    def get_low_stock_medicines(
        self,
        session: Session,
        patient_id: int,
        threshold: Optional[int] = None
    ) -> List[models.Medicine]:
        limit = self.config.LOW_STOCK_THRESHOLD if threshold is None else threshold
        return session.query(models.Medicine).filter(
            and_(
                models.Medicine.patient_id == patient_id,
                models.Medicine.stock <= limit
            )
        ).order_by(models.Medicine.stock).all()

    def get_out_of_stock_medicines(self, session: Session, patient_id: int) -> List[models.Medicine]:
        return session.query(models.Medicine).filter(
            and_(
                models.Medicine.patient_id == patient_id,
                models.Medicine.stock == 0
            )
        ).order_by(models.Medicine.name).all()

    async def list_medicines(self, patient_id: int, db: Optional[Session] = None) -> List[dict]:
        """Plain-data view of a patient's medicines"""
        def _get(session: Session) -> List[dict]:
            return [
                {
                    "id": m.id,
                    "patient_id": m.patient_id,
                    "name": m.name,
                    "dosage": m.dosage,
                    "frequency": m.frequency,
                    "times": m.times_list,
                    "stock": m.stock,
                    "instructions": m.instructions
                }
                for m in self.get_medicines_by_patient(session, patient_id)
            ]

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)


# Singleton instance
medicine_service = MedicineService()
