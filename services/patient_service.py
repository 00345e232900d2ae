"""
Patient Service
Patients and the caregiver/doctor links that grant read access to them
"""

import logging
from typing import List, Optional
from sqlalchemy.orm import Session

import models
from models import UserRole


logger = logging.getLogger(__name__)


class PatientService:
    """
    Service for patient lookups and relationships
    """

    def get_user(self, session: Session, user_id: int) -> Optional[models.User]:
        return session.query(models.User).filter(models.User.id == user_id).first()

    def get_patient(self, session: Session, patient_id: int) -> Optional[models.User]:
        return session.query(models.User).filter(
            models.User.id == patient_id,
            models.User.role == UserRole.PATIENT
        ).first()

    def _link(
        self,
        session: Session,
        patient_id: int,
        linked_id: int,
        role: UserRole
    ) -> models.Relationship:
        patient = self.get_patient(session, patient_id)
        if not patient:
            raise ValueError(f"Patient {patient_id} not found")

        linked = self.get_user(session, linked_id)
        if not linked or linked.role != role:
            raise ValueError(f"{role.value.capitalize()} {linked_id} not found")

        link = models.Relationship(
            patient_id=patient_id,
            relationship_type=role.value,
            caregiver_id=linked_id if role == UserRole.CAREGIVER else None,
            doctor_id=linked_id if role == UserRole.DOCTOR else None
        )
        session.add(link)
        session.commit()
        session.refresh(link)

        logger.info(f"Linked {role.value} {linked_id} to patient {patient_id}")
        return link

    def link_caregiver(self, session: Session, patient_id: int, caregiver_id: int) -> models.Relationship:
        return self._link(session, patient_id, caregiver_id, UserRole.CAREGIVER)

    def link_doctor(self, session: Session, patient_id: int, doctor_id: int) -> models.Relationship:
        return self._link(session, patient_id, doctor_id, UserRole.DOCTOR)

    def get_patients_by_doctor(self, session: Session, doctor_id: int) -> List[models.User]:
        """Patients in a doctor's panel, in link order"""
        return session.query(models.User).join(
            models.Relationship, models.Relationship.patient_id == models.User.id
        ).filter(
            models.Relationship.doctor_id == doctor_id
        ).order_by(models.Relationship.id).all()

    def get_linked_caregivers(self, session: Session, patient_id: int) -> List[models.User]:
        return session.query(models.User).join(
            models.Relationship, models.Relationship.caregiver_id == models.User.id
        ).filter(
            models.Relationship.patient_id == patient_id
        ).order_by(models.Relationship.id).all()


# Singleton instance
patient_service = PatientService()
