"""
Medications API Router
Endpoints for medication management and intake logging
"""

from typing import List
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user_id, services
from api.schemas.medication import (
    MedicationCreate,
    MedicationRenew,
    MedicationResponse,
    MedicationList,
    IntakeLogCreate,
    IntakeLogResponse,
)
from exceptions import ReportValidationError
from services.adherence_service import ReportWindow, adherence_service


router = APIRouter(prefix="/medications", tags=["medications"])


@router.post("/", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
async def create_medication(
    medication_data: MedicationCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Add a new medication

    - **time_of_day**: named schedule slots, one dose per slot per day
    - **medication_type**: one-time, prescription or as-needed
    - **duration_days**: course length; sets end_date when it is omitted
    """
    medication_service = services.get_medication_service()

    try:
        return await medication_service.create_medication(
            user_id=user_id,
            name=medication_data.name,
            dosage=medication_data.dosage,
            frequency=medication_data.frequency,
            time_of_day=medication_data.time_of_day,
            medication_type=medication_data.medication_type,
            start_date=medication_data.start_date,
            end_date=medication_data.end_date,
            duration_days=medication_data.duration_days,
            instructions=medication_data.instructions,
            color=medication_data.color,
            db=db
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.get("/", response_model=MedicationList)
async def list_medications(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get the user's active medications
    """
    medication_service = services.get_medication_service()

    medications = await medication_service.list_active_medications(user_id, db=db)
    return MedicationList(
        medications=[MedicationResponse.model_validate(m) for m in medications],
        total=len(medications)
    )


@router.get("/expired", response_model=MedicationList)
async def list_expired_medications(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get medications whose course has ended but that are not archived
    """
    medication_service = services.get_medication_service()

    medications = await medication_service.list_expired_medications(user_id, db=db)
    return MedicationList(
        medications=[MedicationResponse.model_validate(m) for m in medications],
        total=len(medications)
    )


@router.get("/logs", response_model=List[IntakeLogResponse])
async def list_intake_logs(
    start_date: datetime = Query(..., description="Window start"),
    end_date: datetime = Query(..., description="Window end"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get dose events inside a window, newest first
    """
    window = ReportWindow(start=start_date, end=end_date)
    try:
        adherence_service.validate_window(window)
    except ReportValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    medication_service = services.get_medication_service()
    return await medication_service.list_logs(user_id, window, db=db)


@router.post("/{medication_id}/renew", response_model=MedicationResponse)
async def renew_medication(
    medication_id: str,
    renew_data: MedicationRenew,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Renew a medication for a new period starting today
    """
    medication_service = services.get_medication_service()

    try:
        return await medication_service.renew_medication(
            medication_id,
            duration_days=renew_data.duration_days,
            user_id=user_id,
            db=db
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{medication_id}/archive", response_model=MedicationResponse)
async def archive_medication(
    medication_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Archive a medication; its logs stay in history
    """
    medication_service = services.get_medication_service()

    try:
        return await medication_service.archive_medication(
            medication_id, user_id=user_id, db=db
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{medication_id}/logs",
    response_model=IntakeLogResponse,
    status_code=status.HTTP_201_CREATED
)
async def log_intake(
    medication_id: str,
    log_data: IntakeLogCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Record a taken, missed or skipped dose
    """
    medication_service = services.get_medication_service()

    try:
        return await medication_service.log_intake(
            user_id=user_id,
            medication_id=medication_id,
            scheduled_time=log_data.scheduled_time,
            status=log_data.status,
            taken_at=log_data.taken_at,
            notes=log_data.notes,
            db=db
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
