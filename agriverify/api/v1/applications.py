"""Loan application submission, re-evaluation and status endpoints"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status

from agriverify.api.v1.schemas import (
    ApplicationAccepted,
    ApplicationRequest,
    EvaluationAccepted,
    StatusResponse,
)
from agriverify.api.dependencies import get_orchestrator, get_request_id
from agriverify.domain.exceptions import (
    ApplicationNotFoundError,
    EvaluationConflictError,
    PersistenceFailure,
    ValidationError,
)
from agriverify.domain.models import ApplicationStatus, Coordinates, LoanClaim
from agriverify.pipeline.orchestrator import EvaluationOrchestrator

router = APIRouter()


def _raise_http_error(e: Exception, request_id: str):
    """Translate domain errors into HTTP responses"""
    if isinstance(e, ApplicationNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, EvaluationConflictError):
        raise HTTPException(status_code=409, detail="Application is already being processed")
    if isinstance(e, PersistenceFailure):
        logging.error(f"Persistence failure: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Application store unavailable, retry later")
    raise e


@router.post("/applications", response_model=ApplicationAccepted, status_code=status.HTTP_201_CREATED)
async def submit_application(
    request_body: ApplicationRequest,
    request: Request,
    orchestrator: EvaluationOrchestrator = Depends(get_orchestrator),
):
    """
    Register a loan application and start its fraud evaluation.

    Flow:
    1. Persist the claim (SUBMITTED)
    2. Move it to PROCESSING and hand the pipeline to a supervised task
    3. Return immediately; poll /status for the result
    """
    request_id = get_request_id(request)
    claim = LoanClaim(
        claimed_land_size_hectares=request_body.claimed_land_size_hectares,
        loan_amount=request_body.loan_amount,
        location=Coordinates(
            latitude=request_body.land_location.latitude,
            longitude=request_body.land_location.longitude,
        ),
        document_reference=request_body.document_reference,
        applicant_name=request_body.applicant_name,
        loan_purpose=request_body.loan_purpose,
        land_address=request_body.land_location.address,
    )

    try:
        application_id = orchestrator.register_application(claim)
        ticket = await orchestrator.submit_evaluation(application_id)
    except (ValidationError, EvaluationConflictError, PersistenceFailure) as e:
        _raise_http_error(e, request_id)

    return ApplicationAccepted(
        application_id=ticket.application_id,
        status=ApplicationStatus.PROCESSING.value,
        accepted=ticket.accepted,
    )


@router.post(
    "/applications/{application_id}/evaluations",
    response_model=EvaluationAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reevaluate_application(
    application_id: str,
    request: Request,
    orchestrator: EvaluationOrchestrator = Depends(get_orchestrator),
):
    """Re-run fraud evaluation; 409 while one is still in flight"""
    try:
        ticket = await orchestrator.reevaluate(application_id)
    except (ValidationError, EvaluationConflictError, PersistenceFailure) as e:
        _raise_http_error(e, get_request_id(request))

    return EvaluationAccepted(application_id=ticket.application_id, accepted=ticket.accepted)


@router.get("/applications/{application_id}/status", response_model=StatusResponse)
def get_application_status(
    application_id: str,
    request: Request,
    orchestrator: EvaluationOrchestrator = Depends(get_orchestrator),
):
    """Current lifecycle status and latest fraud analysis (null until the first completed run)"""
    try:
        view = orchestrator.get_status(application_id)
    except (ValidationError, PersistenceFailure) as e:
        _raise_http_error(e, get_request_id(request))

    return StatusResponse(
        application_id=view.application_id,
        status=view.status.value,
        fraud_analysis=view.fraud_analysis,
        submitted_at=view.submitted_at,
        processed_at=view.processed_at,
    )
