"""Read-only reporting endpoints: full report, listing, portfolio statistics"""

import math
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from agriverify.api.v1.schemas import (
    ApplicationDetails,
    ApplicationListResponse,
    ApplicationSummary,
    LandLocation,
    Pagination,
    ReportResponse,
    StatisticsResponse,
)
from agriverify.domain.models import ApplicationStatus, RiskTier
from agriverify.infrastructure.database.repositories import LoanApplicationRepository, fraud_analysis_dict
from agriverify.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/applications/{application_id}/report", response_model=ReportResponse)
def get_application_report(application_id: str, db: Session = Depends(get_db)):
    """
    Full verification report for a loan officer.

    Returns:
        Claim details, evidence snapshot, fraud analysis and processing time
    """
    try:
        app_uuid = uuid.UUID(application_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid application ID format")

    repo = LoanApplicationRepository(db)
    record = repo.get(app_uuid)

    if not record:
        raise HTTPException(status_code=404, detail="Application not found")

    processing_time_ms = None
    if record.processed_at and record.submitted_at:
        processing_time_ms = (record.processed_at - record.submitted_at).total_seconds() * 1000

    return ReportResponse(
        application=ApplicationDetails(
            application_id=str(record.id),
            applicant_name=record.applicant_name,
            loan_amount=record.loan_amount,
            loan_purpose=record.loan_purpose,
            claimed_land_size_hectares=record.claimed_land_size_hectares,
            land_location=LandLocation(
                latitude=record.latitude,
                longitude=record.longitude,
                address=record.land_address,
            ),
            status=record.status,
            submitted_at=record.submitted_at,
            processed_at=record.processed_at,
        ),
        document_evidence=record.document_evidence,
        satellite_evidence=record.satellite_evidence,
        fraud_analysis=fraud_analysis_dict(record),
        last_error=record.last_error,
        processing_time_ms=processing_time_ms,
    )


@router.get("/applications", response_model=ApplicationListResponse)
def list_applications(
    status: Optional[ApplicationStatus] = Query(None, description="Filter by lifecycle status"),
    risk_tier: Optional[RiskTier] = Query(None, description="Filter by risk tier"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Newest-first, paginated application listing"""
    repo = LoanApplicationRepository(db)
    records, total = repo.list_applications(status=status, risk_tier=risk_tier, page=page, limit=limit)

    applications = [
        ApplicationSummary(
            application_id=str(r.id),
            applicant_name=r.applicant_name,
            loan_amount=r.loan_amount,
            claimed_land_size_hectares=r.claimed_land_size_hectares,
            status=r.status,
            risk_tier=r.risk_tier,
            fraud_score=r.fraud_score,
            submitted_at=r.submitted_at,
        )
        for r in records
    ]

    return ApplicationListResponse(
        applications=applications,
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/statistics", response_model=StatisticsResponse)
def get_statistics(db: Session = Depends(get_db)):
    """Portfolio-wide counts by status and risk tier"""
    repo = LoanApplicationRepository(db)
    return StatisticsResponse(**repo.statistics())
