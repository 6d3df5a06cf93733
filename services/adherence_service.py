"""
Adherence Service
Pure calculation engine for expected doses, taken doses and adherence rates

Day boundaries: every instant is normalized to the reference timezone
(settings.REPORT_TIMEZONE, UTC by default) and reduced to its calendar date
there. Naive datetimes are taken to be UTC, which is how the store keeps them.
"""

import logging
from typing import Dict, List, Optional, Any, Iterable
from datetime import datetime, date, timezone, tzinfo
from dataclasses import dataclass, field
from collections import defaultdict
from zoneinfo import ZoneInfo

from config import settings, report_config
from exceptions import ReportValidationError
from models import MedicationType, LogStatus


logger = logging.getLogger(__name__)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ==================== VALUE TYPES ====================

@dataclass(frozen=True)
class ReportWindow:
    """Closed interval [start, end] a report covers"""
    start: datetime
    end: datetime


@dataclass
class MedicationRecord:
    """Snapshot of a medication as the engine sees it"""
    id: str
    name: str
    dosage: str
    classification: MedicationType = MedicationType.PRESCRIPTION
    schedule_slots: List[str] = field(default_factory=list)
    frequency: str = ""
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    is_archived: bool = False

    def __post_init__(self):
        try:
            self.classification = MedicationType(self.classification)
        except ValueError:
            raise ReportValidationError(
                f"Medication {self.id} has unknown classification {self.classification!r}"
            )

    @property
    def slots_count(self) -> int:
        # An empty slot list is recovered as a single daily dose
        return max(1, len(self.schedule_slots or []))


@dataclass
class IntakeRecord:
    """Snapshot of one dose event"""
    id: str
    medication_id: str
    scheduled_slot: str
    occurred_at: datetime
    outcome: LogStatus

    def __post_init__(self):
        try:
            self.outcome = LogStatus(self.outcome)
        except ValueError:
            raise ReportValidationError(
                f"Log {self.id} has unknown outcome {self.outcome!r}"
            )


@dataclass
class MedicationStat:
    """Per-medication line of a report"""
    medication_id: str
    name: str
    dosage: str
    frequency: str
    classification: MedicationType
    slots_count: int
    overlap_days: int
    expected: Optional[int]
    taken: int
    adherence: Optional[int]
    adherence_level: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "name": self.name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "classification": self.classification.value,
            "slots_count": self.slots_count,
            "overlap_days": self.overlap_days,
            "expected": self.expected,
            "taken": self.taken,
            "adherence": self.adherence,
            "adherence_level": self.adherence_level,
        }


@dataclass
class ReportSummary:
    """Computed adherence summary for one window"""
    start_date: datetime
    end_date: datetime
    period_days: int
    total_medications: int
    expected_doses: int
    taken_doses: int
    missed_doses: int
    adherence_rate: int
    period: Optional[str] = None
    prescriptions: List[MedicationStat] = field(default_factory=list)
    one_time: List[MedicationStat] = field(default_factory=list)
    as_needed: List[MedicationStat] = field(default_factory=list)

    @property
    def medication_stats(self) -> List[MedicationStat]:
        return self.prescriptions + self.one_time + self.as_needed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "period_days": self.period_days,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_medications": self.total_medications,
            "expected_doses": self.expected_doses,
            "taken_doses": self.taken_doses,
            "missed_doses": self.missed_doses,
            "adherence_rate": self.adherence_rate,
            "prescriptions": [s.to_dict() for s in self.prescriptions],
            "one_time": [s.to_dict() for s in self.one_time],
            "as_needed": [s.to_dict() for s in self.as_needed],
        }


# ==================== HELPERS ====================

def round_half_up_percent(numerator: int, denominator: int) -> int:
    """numerator/denominator as a whole percentage, halves rounded up"""
    if denominator <= 0:
        return 0
    # floor(100n/d + 1/2) in integer arithmetic
    return (200 * numerator + denominator) // (2 * denominator)


def adherence_level(rate: Optional[int]) -> Optional[str]:
    """Bucket an adherence percentage into good / fair / poor"""
    if rate is None:
        return None
    if rate >= report_config.ADHERENCE_GOOD_THRESHOLD:
        return "good"
    if rate >= report_config.ADHERENCE_FAIR_THRESHOLD:
        return "fair"
    return "poor"


class AdherenceService:
    """
    Stateless adherence engine.

    Every method is pure given its arguments and the reference timezone;
    nothing here reads the clock or performs I/O.
    """

    def __init__(self, reference_tz: Optional[tzinfo] = None):
        self.reference_tz = reference_tz or ZoneInfo(settings.REPORT_TIMEZONE)

    # ---------- time normalization ----------

    def normalize(self, value: datetime) -> datetime:
        """Convert an instant to the reference timezone (naive = UTC)"""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.reference_tz)

    def calendar_day(self, value: datetime) -> date:
        return self.normalize(value).date()

    def validate_window(self, window: ReportWindow) -> None:
        if self.normalize(window.start) > self.normalize(window.end):
            raise ReportValidationError(
                f"Report window start {window.start.isoformat()} is after end {window.end.isoformat()}"
            )

    def validate_medication(self, medication: MedicationRecord) -> None:
        if medication.active_from is not None and medication.active_until is not None:
            if self.normalize(medication.active_until) < self.normalize(medication.active_from):
                raise ReportValidationError(
                    f"Medication {medication.id} ends before it starts"
                )

    # ---------- 1. interval overlap ----------

    def period_days(self, window: ReportWindow) -> int:
        """Inclusive calendar-day count of the window"""
        return (self.calendar_day(window.end) - self.calendar_day(window.start)).days + 1

    def overlap_days(self, medication: MedicationRecord, window: ReportWindow) -> int:
        """
        Calendar days on which the medication's active interval meets the window

        An open-ended medication counts as active through the window's end.
        """
        effective_start = medication.active_from or EPOCH
        effective_end = medication.active_until or window.end

        overlap_start = max(self.calendar_day(effective_start), self.calendar_day(window.start))
        overlap_end = min(self.calendar_day(effective_end), self.calendar_day(window.end))

        if overlap_start > overlap_end:
            return 0
        return (overlap_end - overlap_start).days + 1

    # ---------- 2. dose expectation ----------

    def expected_doses(self, medication: MedicationRecord, overlap_days: int) -> Optional[int]:
        """
        Expected dose count for a medication over its overlap days

        Returns None for as-needed medications, which carry no expectation.
        """
        classification = medication.classification
        if classification == MedicationType.ONE_TIME:
            return 1
        if classification == MedicationType.AS_NEEDED:
            return None
        if classification == MedicationType.PRESCRIPTION:
            return medication.slots_count * max(0, overlap_days)
        raise ReportValidationError(f"Unhandled classification {classification!r}")

    # ---------- 3. log grouping ----------

    def _in_window(self, log: IntakeRecord, window: ReportWindow) -> bool:
        occurred = self.normalize(log.occurred_at)
        return self.normalize(window.start) <= occurred <= self.normalize(window.end)

    def group_taken(self, logs: Iterable[IntakeRecord], window: ReportWindow) -> Dict[str, int]:
        """Count taken logs per medication within the window"""
        counts: Dict[str, int] = defaultdict(int)
        for log in logs:
            if log.outcome == LogStatus.TAKEN and self._in_window(log, window):
                counts[log.medication_id] += 1
        return dict(counts)

    def group_outcomes(
        self,
        logs: Iterable[IntakeRecord],
        window: ReportWindow
    ) -> Dict[str, Dict[str, int]]:
        """Per-medication counts of every outcome within the window"""
        grouped: Dict[str, Dict[str, int]] = {}
        for log in logs:
            if not self._in_window(log, window):
                continue
            counts = grouped.setdefault(
                log.medication_id, {status.value: 0 for status in LogStatus}
            )
            counts[log.outcome.value] += 1
        return grouped

    # ---------- 4. aggregation ----------

    def build_summary(
        self,
        medications: List[MedicationRecord],
        logs: List[IntakeRecord],
        window: ReportWindow,
        period: Optional[str] = None
    ) -> ReportSummary:
        """
        Build the adherence summary for a window

        Only prescriptions contribute to the aggregate expected/taken totals
        and the overall rate. One-time and as-needed medications are listed
        with their taken counts but never mixed into those figures.

        Raises:
            ReportValidationError: window start after end, or a medication
                whose interval ends before it starts
        """
        self.validate_window(window)
        for medication in medications:
            self.validate_medication(medication)

        taken_by_medication = self.group_taken(logs, window)

        prescriptions: List[MedicationStat] = []
        one_time: List[MedicationStat] = []
        as_needed: List[MedicationStat] = []

        for medication in medications:
            if medication.is_archived:
                logger.debug(f"Skipping archived medication {medication.id}")
                continue

            overlap = self.overlap_days(medication, window)
            expected = self.expected_doses(medication, overlap)
            taken = taken_by_medication.get(medication.id, 0)

            if medication.classification == MedicationType.PRESCRIPTION:
                adherence = round_half_up_percent(taken, expected) if expected else 0
                bucket = prescriptions
            elif medication.classification == MedicationType.ONE_TIME:
                adherence = None
                bucket = one_time
            else:
                adherence = None
                bucket = as_needed

            bucket.append(MedicationStat(
                medication_id=medication.id,
                name=medication.name,
                dosage=medication.dosage,
                frequency=medication.frequency,
                classification=medication.classification,
                slots_count=medication.slots_count,
                overlap_days=overlap,
                expected=expected,
                taken=taken,
                adherence=adherence,
                adherence_level=adherence_level(adherence),
            ))

        expected_total = sum(s.expected for s in prescriptions)
        taken_total = sum(s.taken for s in prescriptions)

        summary = ReportSummary(
            period=period,
            start_date=window.start,
            end_date=window.end,
            period_days=self.period_days(window),
            total_medications=len(prescriptions) + len(one_time) + len(as_needed),
            expected_doses=expected_total,
            taken_doses=taken_total,
            missed_doses=max(0, expected_total - taken_total),
            adherence_rate=round_half_up_percent(taken_total, expected_total),
            prescriptions=prescriptions,
            one_time=one_time,
            as_needed=as_needed,
        )

        logger.info(
            f"Built adherence summary: {summary.period_days} days, "
            f"{summary.taken_doses}/{summary.expected_doses} doses, "
            f"{summary.adherence_rate}%"
        )
        return summary


# Singleton instance
adherence_service = AdherenceService()
