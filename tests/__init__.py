"""
DoseLedger Test Suite
=====================

This package contains all tests for the DoseLedger adherence reporting service.

Test Structure:
- test_services/: adherence engine, insight, medication and report services
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_services/

    # Run only marked tests
    pytest -m "api"
"""

import os
from datetime import datetime, timedelta, timezone
from typing import List

# Keep the application engine off disk before config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.pop("INSIGHTS_API_KEY", None)

from models import LogStatus  # noqa: E402
from services.adherence_service import IntakeRecord  # noqa: E402


TEST_USER_ID = "0b7c3c1e-5d0a-4b7e-9a51-2f0f3f0c0001"
OTHER_USER_ID = "0b7c3c1e-5d0a-4b7e-9a51-2f0f3f0c0002"


def utc(*args) -> datetime:
    """Aware UTC datetime shorthand"""
    return datetime(*args, tzinfo=timezone.utc)


def make_logs(
    medication_id: str,
    count: int,
    start: datetime,
    outcome: LogStatus = LogStatus.TAKEN,
    slots: tuple = ("Morning", "Evening"),
) -> List[IntakeRecord]:
    """`count` logs filling consecutive slots (08:00, 20:00) from `start`'s day"""
    logs = []
    for i in range(count):
        day, slot_index = divmod(i, len(slots))
        occurred = (start + timedelta(days=day)).replace(
            hour=8 if slot_index == 0 else 20, minute=0, second=0, microsecond=0
        )
        logs.append(IntakeRecord(
            id=f"{medication_id}-log-{i}",
            medication_id=medication_id,
            scheduled_slot=slots[slot_index],
            occurred_at=occurred,
            outcome=outcome,
        ))
    return logs


__all__ = [
    "TEST_USER_ID",
    "OTHER_USER_ID",
    "utc",
    "make_logs",
]
