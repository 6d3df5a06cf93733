"""
Medication Schemas
Pydantic models for medication and intake-log API requests and responses
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from config import report_config
from models import MedicationType, LogStatus


# ==================== BASE SCHEMAS ====================

class MedicationBase(BaseModel):
    """Base medication schema"""
    name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)


# ==================== REQUEST SCHEMAS ====================

class MedicationCreate(MedicationBase):
    """Schema for creating a new medication"""
    time_of_day: List[str] = Field(default_factory=list)
    medication_type: MedicationType = MedicationType.PRESCRIPTION
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    duration_days: Optional[int] = Field(None, ge=1)
    instructions: Optional[str] = None
    color: Optional[str] = Field(None, max_length=50)


class MedicationRenew(BaseModel):
    """Schema for renewing an expired medication"""
    duration_days: Optional[int] = Field(None, ge=1, le=report_config.RENEWAL_MAX_DAYS)


class IntakeLogCreate(BaseModel):
    """Schema for logging a dose event"""
    scheduled_time: str = Field(..., min_length=1, max_length=50)
    status: LogStatus = LogStatus.TAKEN
    taken_at: Optional[datetime] = None
    notes: Optional[str] = None


# ==================== RESPONSE SCHEMAS ====================

class MedicationResponse(MedicationBase):
    """Schema for medication response"""
    id: str
    user_id: str
    time_of_day: List[str] = Field(default_factory=list)
    medication_type: MedicationType
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    duration_days: Optional[int] = None
    instructions: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MedicationList(BaseModel):
    """List of medications"""
    medications: List[MedicationResponse]
    total: int


class IntakeLogResponse(BaseModel):
    """Schema for a logged dose event"""
    id: str
    medication_id: str
    scheduled_time: str
    taken_at: datetime
    status: LogStatus
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
