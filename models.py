"""
Database Models
SQLAlchemy ORM models for DoseLedger
"""

import uuid
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, Text, Enum, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum

from config import TableNames
from database import Base


# ==================== ENUMS ====================

class MedicationType(str, PyEnum):
    """Classification governing how a medication counts toward adherence"""
    ONE_TIME = "one-time"
    PRESCRIPTION = "prescription"
    AS_NEEDED = "as-needed"


class LogStatus(str, PyEnum):
    """Outcome of a single dose event"""
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"


def _new_id() -> str:
    return str(uuid.uuid4())


# ==================== MODELS ====================

class Medication(Base):
    """Tracked medication with its schedule slots and active interval"""
    __tablename__ = TableNames.MEDICATIONS

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)

    # Display info
    name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)  # e.g., "500mg"
    frequency = Column(String(100), nullable=False)  # "twice daily"
    instructions = Column(Text)
    color = Column(String(50))

    # Schedule
    time_of_day = Column(JSON, default=list)  # ["Morning", "Bedtime"]
    medication_type = Column(Enum(MedicationType), nullable=False, default=MedicationType.PRESCRIPTION)

    # Active interval, naive UTC. NULL start = always active, NULL end = ongoing
    start_date = Column(DateTime, default=datetime.utcnow)
    end_date = Column(DateTime)
    duration_days = Column(Integer)

    # False once archived
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    logs = relationship("MedicationLog", back_populates="medication")

    __table_args__ = (
        Index("ix_medications_user_active", "user_id", "is_active"),
    )


class MedicationLog(Base):
    """Immutable record of one dose event"""
    __tablename__ = TableNames.MEDICATION_LOGS

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    medication_id = Column(String(36), ForeignKey(f"{TableNames.MEDICATIONS}.id"), nullable=False)

    scheduled_time = Column(String(50), nullable=False)  # slot name, e.g. "Morning"
    taken_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    status = Column(Enum(LogStatus), nullable=False, default=LogStatus.TAKEN)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    medication = relationship("Medication", back_populates="logs")

    __table_args__ = (
        Index("ix_medication_logs_user_taken", "user_id", "taken_at"),
    )
