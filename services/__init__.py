"""
Services Module
Business logic layer for the DoseLedger application
"""

from services.adherence_service import AdherenceService, adherence_service
from services.llm_service import LLMService, llm_service
from services.insight_service import InsightService, insight_service
from services.medication_service import MedicationService, medication_service
from services.report_service import ReportService, report_service


__all__ = [
    # Service classes
    "AdherenceService",
    "LLMService",
    "InsightService",
    "MedicationService",
    "ReportService",
    # Singleton instances
    "adherence_service",
    "llm_service",
    "insight_service",
    "medication_service",
    "report_service",
]
