"""
Database Models
SQLAlchemy ORM models for MediTrack
"""

import logging
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text, Date, Enum, Index, UniqueConstraint, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator
from datetime import datetime, date, time, timezone
from enum import Enum as PyEnum

from config import TableNames
from database import Base


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class IsoTimestamp(TypeDecorator):
    """
    Timestamp stored as ISO-8601 text (naive UTC, fixed width so text order
    matches time order).

    Stored values that do not parse load as None; readers skip such records.
    """
    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        elif isinstance(value, date) and not isinstance(value, datetime):
            value = datetime.combine(value, time.min)
        if not isinstance(value, datetime):
            raise ValueError(f"Unsupported timestamp value: {value!r}")
        return _naive_utc(value).isoformat(sep=" ", timespec="microseconds")

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, datetime):
            return value
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _naive_utc(datetime.fromisoformat(text))
        except ValueError:
            logger.warning(f"Unparsable stored timestamp {value!r}")
            return None


# ==================== ENUMS ====================

class UserRole(str, PyEnum):
    """Roles a user can hold"""
    PATIENT = "patient"
    CAREGIVER = "caregiver"
    DOCTOR = "doctor"


class DoseStatus(str, PyEnum):
    """Status of a scheduled dose occurrence"""
    PENDING = "pending"
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self != DoseStatus.PENDING


# ==================== MODELS ====================

class User(Base):
    """Patient, caregiver or doctor"""
    __tablename__ = TableNames.USERS

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    age = Column(Integer)
    username = Column(String(100))
    role = Column(Enum(UserRole), nullable=False)
    unique_code = Column(String(20), unique=True, nullable=False)
    relation = Column(String(50))  # caregiver's relation to the patient
    specialization = Column(String(100))  # doctors only
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    medicines = relationship("Medicine", back_populates="patient", cascade="all, delete-orphan")
    dose_logs = relationship("DoseLog", back_populates="patient", cascade="all, delete-orphan")
    adherence_stats = relationship("DailyAdherenceStat", back_populates="patient", cascade="all, delete-orphan")


class Medicine(Base):
    """Prescribed item with a fixed set of daily clock times"""
    __tablename__ = TableNames.MEDICINES

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)

    name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)  # e.g., "500mg"
    frequency = Column(String(100), nullable=False)  # "twice daily"
    times = Column(JSON, default=list)  # ["08:00", "20:00"]
    stock = Column(Integer, default=0, nullable=False)  # doses remaining
    instructions = Column(Text)

    created_at = Column(DateTime, default=utc_now)

    # Relationships
    patient = relationship("User", back_populates="medicines")
    dose_logs = relationship("DoseLog", back_populates="medicine", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_medicines_patient", "patient_id"),
    )

    @property
    def times_list(self) -> list:
        return list(self.times or [])


class DoseLog(Base):
    """One scheduled occurrence of one medicine for one patient"""
    __tablename__ = TableNames.DOSE_LOGS

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey(f"{TableNames.MEDICINES}.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)

    scheduled_time = Column(IsoTimestamp, nullable=False)
    taken_at = Column(IsoTimestamp)  # set only when status is taken

    status = Column(Enum(DoseStatus), default=DoseStatus.PENDING, nullable=False)
    notes = Column(Text)

    created_at = Column(DateTime, default=utc_now)

    # Relationships
    patient = relationship("User", back_populates="dose_logs")
    medicine = relationship("Medicine", back_populates="dose_logs")

    __table_args__ = (
        Index("ix_dose_logs_patient_scheduled", "patient_id", "scheduled_time"),
        Index("ix_dose_logs_medicine_scheduled", "medicine_id", "scheduled_time"),
        Index("ix_dose_logs_status", "status"),
    )


class DailyAdherenceStat(Base):
    """Adherence snapshot for one patient on one calendar date"""
    __tablename__ = TableNames.ADHERENCE_STATS

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)
    date = Column(Date, nullable=False)
    total_doses = Column(Integer, default=0, nullable=False)
    taken_doses = Column(Integer, default=0, nullable=False)
    adherence_rate = Column(Float, default=0.0, nullable=False)

    # Relationships
    patient = relationship("User", back_populates="adherence_stats")

    __table_args__ = (
        UniqueConstraint("patient_id", "date", name="uq_adherence_stat_patient_date"),
    )


class Relationship(Base):
    """Read link from a caregiver or doctor to a patient"""
    __tablename__ = TableNames.RELATIONSHIPS

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)
    caregiver_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"))
    doctor_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"))
    relationship_type = Column(String(20), nullable=False)  # "caregiver", "doctor"
    linked_at = Column(DateTime, default=utc_now)

    patient = relationship("User", foreign_keys=[patient_id])
    caregiver = relationship("User", foreign_keys=[caregiver_id])
    doctor = relationship("User", foreign_keys=[doctor_id])

    __table_args__ = (
        Index("ix_relationships_patient", "patient_id"),
        Index("ix_relationships_doctor", "doctor_id"),
    )
