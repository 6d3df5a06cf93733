"""
Report Schemas
Pydantic models for adherence report API requests and responses
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


# ==================== REQUEST SCHEMAS ====================

class ReportCreate(BaseModel):
    """Schema for requesting an adherence report"""
    period: str = Field(default="weekly", pattern="^(weekly|monthly|custom)$")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    include_insights: bool = False
    include_expired: Optional[bool] = None


# ==================== RESPONSE SCHEMAS ====================

class MedicationStatItem(BaseModel):
    """Per-medication line of a report"""
    medication_id: str
    name: str
    dosage: str
    frequency: str
    classification: str
    slots_count: int
    overlap_days: int
    expected: Optional[int] = None
    taken: int
    adherence: Optional[int] = None
    adherence_level: Optional[str] = None


class InsightOutcome(BaseModel):
    """Narrative insight text, or why it is missing"""
    status: str  # "ok", "rate_limited", "payment_required", "upstream_error"
    text: Optional[str] = None
    error: Optional[str] = None


class LogEntry(BaseModel):
    """Dose event inside the report window"""
    id: str
    medication_id: str
    medication_name: Optional[str] = None
    dosage: Optional[str] = None
    scheduled_time: str
    taken_at: str
    status: str


class ReportResponse(BaseModel):
    """Schema for an adherence report"""
    period: Optional[str] = None
    period_days: int
    start_date: datetime
    end_date: datetime
    total_medications: int
    expected_doses: int
    taken_doses: int
    missed_doses: int
    adherence_rate: int
    prescriptions: List[MedicationStatItem]
    one_time: List[MedicationStatItem]
    as_needed: List[MedicationStatItem]
    insights: Optional[InsightOutcome] = None
    logs: List[LogEntry] = Field(default_factory=list)
