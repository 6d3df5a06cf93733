"""
Report Service
Assembles adherence reports from medication snapshots, intake logs and
optional narrative insights
"""

import calendar
import logging
from typing import Dict, List, Optional, Any, Tuple
from datetime import datetime, time, timedelta
from dataclasses import dataclass, field
from sqlalchemy.orm import Session

from config import report_config
from database import get_db_context
from exceptions import ReportValidationError
from services.adherence_service import (
    AdherenceService,
    adherence_service,
    MedicationRecord,
    IntakeRecord,
    ReportWindow,
    ReportSummary,
)
from services.insight_service import InsightService, InsightResult, insight_service
from services.medication_service import MedicationService, medication_service


logger = logging.getLogger(__name__)


@dataclass
class Report:
    """Numeric summary plus the outcome of the narrative step"""
    summary: ReportSummary
    insights: Optional[InsightResult] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary.to_dict()
        data["insights"] = self.insights.to_dict() if self.insights else None
        data["logs"] = self.logs
        return data


def _months_back(value: datetime, months: int) -> datetime:
    """Same wall-clock time `months` calendar months earlier, day clamped"""
    month_index = value.month - 1 - months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class ReportService:
    """
    Service for generating adherence reports
    """

    def __init__(
        self,
        calculator: Optional[AdherenceService] = None,
        insights: Optional[InsightService] = None,
        medications: Optional[MedicationService] = None
    ):
        self.calculator = calculator or adherence_service
        self.insights = insights or insight_service
        self.medications = medications or medication_service

    def resolve_window(
        self,
        period: Optional[str],
        now: datetime,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[ReportWindow, str]:
        """
        Resolve a report period into a concrete window

        Weekly covers the 7 calendar days ending on `end` (default `now`),
        monthly runs from the day after the same date one month earlier.
        Explicit bounds always win. Bounds are snapped to the start and end
        of their days in the reference timezone.

        Raises:
            ReportValidationError: unknown period, or start after end
        """
        if period is not None and period not in report_config.PERIODS:
            raise ReportValidationError(f"Unknown report period {period!r}")

        end_at = self.calculator.normalize(end or now)
        if start is not None:
            start_at = self.calculator.normalize(start)
            period = period or "custom"
        elif period == "monthly":
            start_at = _months_back(end_at, report_config.MONTHLY_MONTHS) + timedelta(days=1)
        elif period == "custom":
            raise ReportValidationError("A custom report needs a start date")
        else:
            start_at = end_at - timedelta(days=report_config.WEEKLY_DAYS - 1)
            period = period or "weekly"

        tz = self.calculator.reference_tz
        window = ReportWindow(
            start=datetime.combine(start_at.date(), time.min, tzinfo=tz),
            end=datetime.combine(end_at.date(), time.max, tzinfo=tz),
        )
        self.calculator.validate_window(window)
        return window, period

    def select_medications(
        self,
        medications: List[MedicationRecord],
        include_expired: bool,
        now: datetime
    ) -> List[MedicationRecord]:
        """Drop archived medications, and expired ones unless requested"""
        current = self.calculator.normalize(now)
        selected = []
        for medication in medications:
            if medication.is_archived:
                continue
            if (
                not include_expired
                and medication.active_until is not None
                and self.calculator.normalize(medication.active_until) < current
            ):
                continue
            selected.append(medication)
        return selected

    async def generate_report(
        self,
        medications: List[MedicationRecord],
        logs: List[IntakeRecord],
        window: ReportWindow,
        include_insights: bool = False,
        include_expired: bool = True,
        now: Optional[datetime] = None,
        period: Optional[str] = None
    ) -> Report:
        """
        Generate a report for one window

        The numeric summary is complete before the insight call starts; an
        insight failure is recorded on the report and never raised.

        Args:
            medications: Medication snapshots for one owner
            logs: Intake logs for those medications
            window: Closed report window
            include_insights: Whether to request narrative insights
            include_expired: Keep medications whose interval ended before now
            now: Current instant, defaults to the window end
            period: Label carried on the summary

        Raises:
            ReportValidationError: malformed window or medication record
        """
        self.calculator.validate_window(window)

        eligible = self.select_medications(
            medications, include_expired, now or window.end
        )
        summary = self.calculator.build_summary(eligible, logs, window, period=period)

        insights = None
        if include_insights:
            insights = await self.insights.collect_insights(summary)

        logger.info(
            f"Generated {period or 'custom'} report: {summary.total_medications} medications, "
            f"adherence {summary.adherence_rate}%, "
            f"insights {insights.status if insights else 'not requested'}"
        )
        return Report(summary=summary, insights=insights)

    async def create_user_report(
        self,
        user_id: str,
        period: Optional[str] = "weekly",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        include_insights: bool = False,
        include_expired: bool = True,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> Report:
        """
        Fetch a user's medications and logs and generate their report

        Args:
            user_id: Owner the request was validated for
            period: weekly, monthly or custom
            start_date: Explicit window start
            end_date: Explicit window end
            include_insights: Whether to request narrative insights
            include_expired: Keep expired (not archived) medications
            now: Current instant
            db: Database session

        Returns:
            Report with the window's log entries attached
        """
        now = now or datetime.utcnow()
        window, period = self.resolve_window(period, now, start_date, end_date)

        async def _create(session: Session) -> Report:
            medications = await self.medications.list_report_medications(
                user_id, include_expired=include_expired, now=now, db=session
            )
            rows = await self.medications.list_logs(
                user_id, window, medication_ids=[m.id for m in medications], db=session
            )
            log_entries = [
                {
                    "id": row.id,
                    "medication_id": row.medication_id,
                    "medication_name": row.medication.name if row.medication else None,
                    "dosage": row.medication.dosage if row.medication else None,
                    "scheduled_time": row.scheduled_time,
                    "taken_at": row.taken_at.isoformat(),
                    "status": row.status.value,
                }
                for row in rows
            ]
            records = [self.medications.log_to_record(row) for row in rows]

            report = await self.generate_report(
                medications,
                records,
                window,
                include_insights=include_insights,
                include_expired=include_expired,
                now=now,
                period=period,
            )
            report.logs = log_entries
            return report

        if db:
            return await _create(db)

        with get_db_context() as session:
            return await _create(session)


# Singleton instance
report_service = ReportService()
