"""
Medication Service
Data source for medications and intake logs, backed by SQLAlchemy
"""

import logging
from typing import List, Optional
from datetime import datetime, time, timedelta, timezone
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, desc

from database import get_db_context
import models
from models import MedicationType, LogStatus
from services.adherence_service import (
    adherence_service,
    MedicationRecord,
    IntakeRecord,
    ReportWindow,
)


logger = logging.getLogger(__name__)


def _to_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Store instants as naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _end_of_day(value: datetime) -> datetime:
    """Last instant of value's calendar day in the reference timezone, as naive UTC"""
    local = adherence_service.normalize(value)
    end = datetime.combine(local.date(), time.max, tzinfo=local.tzinfo)
    return _to_storage(end)


class MedicationService:
    """
    Service for medication and intake-log operations
    """

    async def create_medication(
        self,
        user_id: str,
        name: str,
        dosage: str,
        frequency: str,
        time_of_day: Optional[List[str]] = None,
        medication_type: MedicationType = MedicationType.PRESCRIPTION,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        duration_days: Optional[int] = None,
        instructions: Optional[str] = None,
        color: Optional[str] = None,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> models.Medication:
        """
        Add a new medication for a user

        Args:
            user_id: Owner
            name: Medication name
            dosage: Dosage (e.g., "500mg")
            frequency: Frequency description (e.g., "twice daily")
            time_of_day: Named schedule slots
            medication_type: one-time, prescription or as-needed
            start_date: Start of the active interval (defaults to now)
            end_date: End of the active interval; derived from duration_days when omitted
            duration_days: Course length in days
            now: Current instant
            db: Database session

        Returns:
            Created Medication object
        """
        if duration_days is not None and duration_days < 1:
            raise ValueError("duration_days must be at least 1")

        def _create(session: Session) -> models.Medication:
            start = _to_storage(start_date or now or datetime.utcnow())
            end = _to_storage(end_date)
            if end is None and duration_days:
                end = _end_of_day(start + timedelta(days=duration_days - 1))
            if end is not None and end < start:
                raise ValueError("end_date is before start_date")

            medication = models.Medication(
                user_id=user_id,
                name=name,
                dosage=dosage,
                frequency=frequency,
                time_of_day=list(time_of_day or []),
                medication_type=MedicationType(medication_type),
                start_date=start,
                end_date=end,
                duration_days=duration_days,
                instructions=instructions,
                color=color,
                is_active=True
            )

            session.add(medication)
            session.commit()
            session.refresh(medication)

            logger.info(f"Added medication {name} ({medication.medication_type.value}) for user {user_id}")
            return medication

        if db:
            return _create(db)

        with get_db_context() as session:
            return _create(session)

    async def get_medication(
        self,
        medication_id: str,
        user_id: Optional[str] = None,
        db: Optional[Session] = None
    ) -> Optional[models.Medication]:
        """Get medication by ID, optionally scoped to its owner"""
        def _get(session: Session) -> Optional[models.Medication]:
            query = session.query(models.Medication).filter(
                models.Medication.id == medication_id
            )
            if user_id is not None:
                query = query.filter(models.Medication.user_id == user_id)
            return query.first()

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def list_active_medications(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> List[models.Medication]:
        """Non-archived medications whose interval has not ended"""
        def _list(session: Session) -> List[models.Medication]:
            current = _to_storage(now or datetime.utcnow())
            return session.query(models.Medication).filter(
                and_(
                    models.Medication.user_id == user_id,
                    models.Medication.is_active.is_(True),
                    or_(
                        models.Medication.end_date.is_(None),
                        models.Medication.end_date >= current
                    )
                )
            ).order_by(models.Medication.created_at).all()

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def list_expired_medications(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> List[models.Medication]:
        """Non-archived medications whose end date has passed"""
        def _list(session: Session) -> List[models.Medication]:
            current = _to_storage(now or datetime.utcnow())
            return session.query(models.Medication).filter(
                and_(
                    models.Medication.user_id == user_id,
                    models.Medication.is_active.is_(True),
                    models.Medication.end_date.isnot(None),
                    models.Medication.end_date < current
                )
            ).order_by(desc(models.Medication.end_date)).all()

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def list_report_medications(
        self,
        user_id: str,
        include_expired: bool = True,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> List[MedicationRecord]:
        """Medication snapshots eligible for a report"""
        def _list(session: Session) -> List[MedicationRecord]:
            query = session.query(models.Medication).filter(
                and_(
                    models.Medication.user_id == user_id,
                    models.Medication.is_active.is_(True)
                )
            )
            if not include_expired:
                current = _to_storage(now or datetime.utcnow())
                query = query.filter(
                    or_(
                        models.Medication.end_date.is_(None),
                        models.Medication.end_date >= current
                    )
                )
            rows = query.order_by(models.Medication.created_at).all()
            return [self.to_record(row) for row in rows]

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def renew_medication(
        self,
        medication_id: str,
        duration_days: Optional[int] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> models.Medication:
        """
        Start a new active interval for an expired medication

        The interval begins at now and runs duration_days calendar days;
        without a duration the medication becomes ongoing.
        """
        if duration_days is not None and duration_days < 1:
            raise ValueError("duration_days must be at least 1")

        def _renew(session: Session) -> models.Medication:
            medication = session.query(models.Medication).filter(
                models.Medication.id == medication_id
            ).first()
            if not medication or (user_id is not None and medication.user_id != user_id):
                raise LookupError(f"Medication {medication_id} not found")
            if not medication.is_active:
                raise ValueError(f"Medication {medication_id} is archived")

            start = _to_storage(now or datetime.utcnow())
            medication.start_date = start
            medication.duration_days = duration_days
            medication.end_date = (
                _end_of_day(start + timedelta(days=duration_days - 1))
                if duration_days else None
            )

            session.commit()
            session.refresh(medication)

            logger.info(f"Renewed medication {medication_id} for {duration_days or 'ongoing'} days")
            return medication

        if db:
            return _renew(db)

        with get_db_context() as session:
            return _renew(session)

    async def archive_medication(
        self,
        medication_id: str,
        user_id: Optional[str] = None,
        db: Optional[Session] = None
    ) -> models.Medication:
        """Soft-delete a medication; its logs stay as history"""
        def _archive(session: Session) -> models.Medication:
            medication = session.query(models.Medication).filter(
                models.Medication.id == medication_id
            ).first()
            if not medication or (user_id is not None and medication.user_id != user_id):
                raise LookupError(f"Medication {medication_id} not found")

            medication.is_active = False
            session.commit()
            session.refresh(medication)

            logger.info(f"Archived medication {medication_id}")
            return medication

        if db:
            return _archive(db)

        with get_db_context() as session:
            return _archive(session)

    async def log_intake(
        self,
        user_id: str,
        medication_id: str,
        scheduled_time: str,
        status: LogStatus = LogStatus.TAKEN,
        taken_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        db: Optional[Session] = None
    ) -> models.MedicationLog:
        """Record one dose event"""
        def _log(session: Session) -> models.MedicationLog:
            medication = session.query(models.Medication).filter(
                and_(
                    models.Medication.id == medication_id,
                    models.Medication.user_id == user_id
                )
            ).first()
            if not medication:
                raise LookupError(f"Medication {medication_id} not found")
            if not medication.is_active:
                raise ValueError(f"Medication {medication_id} is archived")

            log = models.MedicationLog(
                user_id=user_id,
                medication_id=medication_id,
                scheduled_time=scheduled_time,
                status=LogStatus(status),
                taken_at=_to_storage(taken_at or datetime.utcnow()),
                notes=notes
            )

            session.add(log)
            session.commit()
            session.refresh(log)

            logger.info(
                f"Logged {log.status.value} dose of medication {medication_id} "
                f"for user {user_id}"
            )
            return log

        if db:
            return _log(db)

        with get_db_context() as session:
            return _log(session)

    async def list_logs(
        self,
        user_id: str,
        window: ReportWindow,
        medication_ids: Optional[List[str]] = None,
        db: Optional[Session] = None
    ) -> List[models.MedicationLog]:
        """Logs of a user inside the window, newest first"""
        def _list(session: Session) -> List[models.MedicationLog]:
            query = session.query(models.MedicationLog).filter(
                and_(
                    models.MedicationLog.user_id == user_id,
                    models.MedicationLog.taken_at >= _to_storage(window.start),
                    models.MedicationLog.taken_at <= _to_storage(window.end)
                )
            )
            if medication_ids is not None:
                query = query.filter(models.MedicationLog.medication_id.in_(medication_ids))
            return query.order_by(desc(models.MedicationLog.taken_at)).all()

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    @staticmethod
    def to_record(medication: models.Medication) -> MedicationRecord:
        """Convert an ORM row into the engine snapshot"""
        return MedicationRecord(
            id=medication.id,
            name=medication.name,
            dosage=medication.dosage,
            frequency=medication.frequency or "",
            classification=medication.medication_type,
            schedule_slots=list(medication.time_of_day or []),
            active_from=medication.start_date,
            active_until=medication.end_date,
            is_archived=not medication.is_active,
        )

    @staticmethod
    def log_to_record(log: models.MedicationLog) -> IntakeRecord:
        return IntakeRecord(
            id=log.id,
            medication_id=log.medication_id,
            scheduled_slot=log.scheduled_time,
            occurred_at=log.taken_at,
            outcome=log.status,
        )


# Singleton instance
medication_service = MedicationService()
