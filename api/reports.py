"""
Reports API Router
Endpoints for adherence report generation
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user_id, services
from api.schemas.report import ReportCreate, ReportResponse
from config import settings
from exceptions import ReportValidationError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/", response_model=ReportResponse)
async def generate_report(
    report_data: ReportCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Generate an adherence report

    - **period**: weekly, monthly or custom
    - **start_date** / **end_date**: explicit window bounds (custom reports)
    - **include_insights**: request narrative insights; a failure is reported
      in the `insights` field and never fails the request
    - **include_expired**: keep medications whose course already ended
    """
    report_service = services.get_report_service()

    include_expired = report_data.include_expired
    if include_expired is None:
        include_expired = settings.REPORT_INCLUDE_EXPIRED

    try:
        report = await report_service.create_user_report(
            user_id=user_id,
            period=report_data.period,
            start_date=report_data.start_date,
            end_date=report_data.end_date,
            include_insights=report_data.include_insights,
            include_expired=include_expired,
            db=db
        )
    except ReportValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return ReportResponse.model_validate(report.to_dict())
