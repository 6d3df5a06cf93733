"""
Tests for Adherence Service
Tests the interval, expectation, grouping and aggregation rules of the report engine
"""

import pytest
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from exceptions import ReportValidationError
from models import MedicationType, LogStatus
from services.adherence_service import (
    AdherenceService,
    MedicationRecord,
    IntakeRecord,
    ReportWindow,
    round_half_up_percent,
    adherence_level,
)
from tests import make_logs, utc


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def calculator():
    """Engine pinned to UTC day boundaries"""
    return AdherenceService(reference_tz=ZoneInfo("UTC"))


def prescription(med_id="rx-1", slots=("Morning",), active_from=None, active_until=None):
    return MedicationRecord(
        id=med_id,
        name=f"Drug {med_id}",
        dosage="10mg",
        classification=MedicationType.PRESCRIPTION,
        schedule_slots=list(slots),
        active_from=active_from,
        active_until=active_until,
    )


# =============================================================================
# Test Interval Overlap
# =============================================================================

class TestOverlapDays:
    """Tests for active-day overlap between a medication and a window"""

    def test_unbounded_medication_covers_whole_window(self, calculator, week_window, prescription_record):
        """An always-active medication overlaps every day of the window"""
        assert calculator.overlap_days(prescription_record, week_window) == 7
        assert calculator.overlap_days(prescription_record, week_window) == calculator.period_days(week_window)

    @pytest.mark.parametrize("days", [1, 2, 30, 31, 365])
    def test_unbounded_medication_matches_period_days(self, calculator, prescription_record, days):
        window = ReportWindow(start=utc(2024, 2, 1), end=utc(2024, 2, 1, 12) + timedelta(days=days - 1))
        assert calculator.overlap_days(prescription_record, window) == days
        assert calculator.period_days(window) == days

    def test_partial_overlap(self, calculator, week_window):
        med = prescription(active_from=utc(2024, 1, 5), active_until=utc(2024, 1, 7))
        assert calculator.overlap_days(med, week_window) == 3

    def test_started_before_window_and_ongoing(self, calculator, week_window):
        med = prescription(active_from=utc(2023, 11, 20, 9, 30))
        assert calculator.overlap_days(med, week_window) == 7

    def test_ends_exactly_on_window_start(self, calculator, week_window):
        """Inclusive boundary: ending on the first day still counts that day"""
        med = prescription(active_from=utc(2023, 12, 1), active_until=week_window.start)
        assert calculator.overlap_days(med, week_window) == 1

    def test_starts_exactly_on_window_end_day(self, calculator, week_window):
        med = prescription(active_from=utc(2024, 1, 7, 18))
        assert calculator.overlap_days(med, week_window) == 1

    def test_starts_one_day_after_window_end(self, calculator, week_window):
        med = prescription(active_from=utc(2024, 1, 8))
        assert calculator.overlap_days(med, week_window) == 0

    def test_ended_before_window_start(self, calculator, week_window):
        med = prescription(active_from=utc(2023, 12, 1), active_until=utc(2023, 12, 31, 23, 59))
        assert calculator.overlap_days(med, week_window) == 0

    def test_open_end_does_not_extend_past_window(self, calculator):
        window = ReportWindow(start=utc(2024, 1, 1), end=utc(2024, 1, 3))
        med = prescription(active_from=utc(2024, 1, 2))
        assert calculator.overlap_days(med, window) == 2

    def test_naive_datetimes_are_utc(self, calculator, week_window):
        med = prescription(active_from=datetime(2024, 1, 5), active_until=datetime(2024, 1, 7, 23))
        assert calculator.overlap_days(med, week_window) == 3

    def test_day_boundaries_follow_reference_timezone(self, week_window):
        """02:00 UTC on Jan 8 is still Jan 7 in New York"""
        new_york = AdherenceService(reference_tz=ZoneInfo("America/New_York"))
        assert new_york.calendar_day(utc(2024, 1, 8, 2)).isoformat() == "2024-01-07"

        med = prescription(active_from=utc(2024, 1, 8, 2))
        window = ReportWindow(start=utc(2024, 1, 1, 5), end=utc(2024, 1, 8, 4, 59))
        assert new_york.overlap_days(med, window) == 1
        assert new_york.period_days(window) == 7


# =============================================================================
# Test Dose Expectation
# =============================================================================

class TestExpectedDoses:
    """Tests for classification-based expected dose counts"""

    def test_prescription_multiplies_slots_by_days(self, calculator, prescription_record):
        assert calculator.expected_doses(prescription_record, 7) == 14

    def test_prescription_without_overlap_expects_nothing(self, calculator, prescription_record):
        assert calculator.expected_doses(prescription_record, 0) == 0

    def test_empty_slots_count_as_one_daily_dose(self, calculator):
        med = prescription(slots=())
        assert med.slots_count == 1
        assert calculator.expected_doses(med, 5) == 5

    @pytest.mark.parametrize("overlap", [0, 1, 7, 90])
    def test_one_time_always_expects_one(self, calculator, one_time_record, overlap):
        assert calculator.expected_doses(one_time_record, overlap) == 1

    def test_as_needed_has_no_expectation(self, calculator, as_needed_record):
        assert calculator.expected_doses(as_needed_record, 7) is None

    def test_unknown_classification_rejected(self):
        with pytest.raises(ReportValidationError):
            MedicationRecord(id="x", name="X", dosage="1mg", classification="weekly-ish")

    def test_classification_accepts_stored_values(self):
        med = MedicationRecord(id="x", name="X", dosage="1mg", classification="as-needed")
        assert med.classification == MedicationType.AS_NEEDED


# =============================================================================
# Test Log Grouping
# =============================================================================

class TestGroupTaken:
    """Tests for counting taken logs per medication"""

    def test_counts_taken_logs_per_medication(self, calculator, week_window):
        logs = make_logs("a", 3, utc(2024, 1, 1)) + make_logs("b", 2, utc(2024, 1, 3))
        assert calculator.group_taken(logs, week_window) == {"a": 3, "b": 2}

    def test_ignores_missed_and_skipped(self, calculator, week_window):
        logs = (
            make_logs("a", 2, utc(2024, 1, 1))
            + make_logs("a", 2, utc(2024, 1, 2), outcome=LogStatus.MISSED)
            + make_logs("a", 1, utc(2024, 1, 3), outcome=LogStatus.SKIPPED)
        )
        assert calculator.group_taken(logs, week_window) == {"a": 2}

    def test_window_bounds_are_inclusive(self, calculator, week_window):
        logs = [
            IntakeRecord("l1", "a", "Morning", week_window.start, LogStatus.TAKEN),
            IntakeRecord("l2", "a", "Bedtime", week_window.end, LogStatus.TAKEN),
            IntakeRecord("l3", "a", "Morning", week_window.end + timedelta(microseconds=1), LogStatus.TAKEN),
            IntakeRecord("l4", "a", "Bedtime", week_window.start - timedelta(seconds=1), LogStatus.TAKEN),
        ]
        assert calculator.group_taken(logs, week_window) == {"a": 2}

    def test_medications_without_logs_are_absent(self, calculator, week_window):
        grouped = calculator.group_taken([], week_window)
        assert grouped == {}
        assert grouped.get("anything", 0) == 0

    def test_group_outcomes_counts_every_status(self, calculator, week_window):
        logs = (
            make_logs("a", 3, utc(2024, 1, 1))
            + make_logs("a", 1, utc(2024, 1, 4), outcome=LogStatus.MISSED)
            + make_logs("a", 1, utc(2024, 1, 5), outcome=LogStatus.SKIPPED)
            + make_logs("a", 4, utc(2024, 2, 1))
        )
        assert calculator.group_outcomes(logs, week_window) == {
            "a": {"taken": 3, "missed": 1, "skipped": 1}
        }

    def test_unknown_outcome_rejected(self):
        with pytest.raises(ReportValidationError):
            IntakeRecord("l1", "a", "Morning", utc(2024, 1, 1), "forgotten")


# =============================================================================
# Test Rounding
# =============================================================================

class TestRounding:
    """Tests for percentage rounding"""

    @pytest.mark.parametrize("taken,expected,rate", [
        (10, 14, 71),   # 71.43
        (2, 3, 67),     # 66.67
        (1, 8, 13),     # 12.5 rounds up
        (1, 200, 1),    # 0.5 rounds up
        (3, 8, 38),     # 37.5 rounds up
        (0, 5, 0),
        (5, 5, 100),
        (0, 0, 0),
    ])
    def test_round_half_up(self, taken, expected, rate):
        assert round_half_up_percent(taken, expected) == rate

    @pytest.mark.parametrize("rate,level", [
        (100, "good"), (80, "good"), (79, "fair"), (50, "fair"), (49, "poor"), (0, "poor"), (None, None),
    ])
    def test_adherence_level(self, rate, level):
        assert adherence_level(rate) == level


# =============================================================================
# Test Summary Aggregation
# =============================================================================

class TestBuildSummary:
    """Tests for the adherence aggregator"""

    def test_scenario_two_slot_prescription(self, calculator, week_window, prescription_record):
        """7 days x 2 slots with 10 taken doses is 71%"""
        logs = make_logs(prescription_record.id, 10, utc(2024, 1, 1))

        summary = calculator.build_summary([prescription_record], logs, week_window)

        stat = summary.prescriptions[0]
        assert stat.expected == 14
        assert stat.taken == 10
        assert stat.adherence == 71
        assert stat.adherence_level == "fair"
        assert summary.expected_doses == 14
        assert summary.taken_doses == 10
        assert summary.missed_doses == 4
        assert summary.adherence_rate == 71
        assert summary.period_days == 7

    def test_scenario_one_time_medication(self, calculator, week_window, one_time_record):
        logs = make_logs(one_time_record.id, 1, utc(2024, 1, 3))

        summary = calculator.build_summary([one_time_record], logs, week_window)

        stat = summary.one_time[0]
        assert stat.expected == 1
        assert stat.taken == 1
        assert stat.adherence is None
        assert summary.expected_doses == 0
        assert summary.taken_doses == 0
        assert summary.adherence_rate == 0
        assert summary.total_medications == 1

    def test_scenario_partial_prescription(self, calculator, week_window):
        med = prescription(active_from=utc(2024, 1, 5), active_until=utc(2024, 1, 7))
        logs = make_logs(med.id, 2, utc(2024, 1, 5), slots=("Morning",))

        summary = calculator.build_summary([med], logs, week_window)

        stat = summary.prescriptions[0]
        assert stat.overlap_days == 3
        assert stat.expected == 3
        assert stat.taken == 2
        assert stat.adherence == 67

    def test_scenario_no_medications(self, calculator, week_window):
        summary = calculator.build_summary([], [], week_window)

        assert summary.total_medications == 0
        assert summary.expected_doses == 0
        assert summary.taken_doses == 0
        assert summary.adherence_rate == 0
        assert summary.prescriptions == []
        assert summary.one_time == []
        assert summary.as_needed == []

    def test_as_needed_never_enters_totals(self, calculator, week_window, prescription_record, as_needed_record):
        logs = (
            make_logs(prescription_record.id, 14, utc(2024, 1, 1))
            + make_logs(as_needed_record.id, 6, utc(2024, 1, 1))
        )

        summary = calculator.build_summary([prescription_record, as_needed_record], logs, week_window)

        assert summary.expected_doses == 14
        assert summary.taken_doses == 14
        assert summary.adherence_rate == 100
        stat = summary.as_needed[0]
        assert stat.taken == 6
        assert stat.expected is None
        assert stat.adherence is None
        assert stat.adherence_level is None

    def test_mixed_classifications_are_partitioned(
        self, calculator, week_window, prescription_record, one_time_record, as_needed_record
    ):
        summary = calculator.build_summary(
            [as_needed_record, prescription_record, one_time_record], [], week_window
        )

        assert [s.medication_id for s in summary.prescriptions] == [prescription_record.id]
        assert [s.medication_id for s in summary.one_time] == [one_time_record.id]
        assert [s.medication_id for s in summary.as_needed] == [as_needed_record.id]
        assert summary.total_medications == 3

    def test_prescription_without_overlap_has_zero_adherence(self, calculator, week_window):
        med = prescription(active_from=utc(2024, 2, 1))
        summary = calculator.build_summary([med], [], week_window)

        stat = summary.prescriptions[0]
        assert stat.expected == 0
        assert stat.adherence == 0

    def test_logs_for_unknown_medications_are_dropped(self, calculator, week_window, prescription_record):
        logs = make_logs(prescription_record.id, 7, utc(2024, 1, 1)) + make_logs("deleted-med", 5, utc(2024, 1, 1))

        summary = calculator.build_summary([prescription_record], logs, week_window)

        assert summary.taken_doses == 7
        assert len(summary.medication_stats) == 1

    def test_archived_medications_are_skipped(self, calculator, week_window, prescription_record):
        archived = prescription(med_id="old")
        archived.is_archived = True

        summary = calculator.build_summary([prescription_record, archived], [], week_window)

        assert summary.total_medications == 1
        assert summary.expected_doses == 14

    def test_rejects_inverted_window(self, calculator, prescription_record):
        window = ReportWindow(start=utc(2024, 1, 7), end=utc(2024, 1, 1))
        with pytest.raises(ReportValidationError):
            calculator.build_summary([prescription_record], [], window)

    def test_rejects_medication_ending_before_it_starts(self, calculator, week_window):
        med = prescription(active_from=utc(2024, 1, 5), active_until=utc(2024, 1, 2))
        with pytest.raises(ReportValidationError):
            calculator.build_summary([med], [], week_window)

    def test_single_instant_window(self, calculator, prescription_record):
        window = ReportWindow(start=utc(2024, 1, 1, 9), end=utc(2024, 1, 1, 9))
        summary = calculator.build_summary([prescription_record], [], window)
        assert summary.period_days == 1
        assert summary.expected_doses == 2

    def test_identical_inputs_give_identical_output(self, calculator, week_window, prescription_record, one_time_record):
        logs = make_logs(prescription_record.id, 9, utc(2024, 1, 2))
        meds = [prescription_record, one_time_record]

        first = calculator.build_summary(meds, logs, week_window, period="weekly")
        second = calculator.build_summary(meds, logs, week_window, period="weekly")

        assert first.to_dict() == second.to_dict()

    def test_to_dict_serializes_enums_and_dates(self, calculator, week_window, prescription_record):
        data = calculator.build_summary([prescription_record], [], week_window, period="weekly").to_dict()

        assert data["period"] == "weekly"
        assert data["start_date"] == "2024-01-01T00:00:00+00:00"
        assert data["prescriptions"][0]["classification"] == "prescription"
