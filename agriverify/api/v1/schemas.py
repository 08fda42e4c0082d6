"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class LandLocation(BaseModel):
    """Claimed plot location"""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None


class ApplicationRequest(BaseModel):
    """Request body for POST /v1/applications"""

    applicant_name: str = Field(..., min_length=2, description="Applicant full name")
    loan_amount: float = Field(..., gt=0, description="Requested loan amount")
    loan_purpose: Literal["agriculture", "livestock", "equipment", "other"] = "agriculture"
    claimed_land_size_hectares: float = Field(..., gt=0, description="Land size claimed by the applicant")
    land_location: LandLocation
    document_reference: str = Field(..., min_length=1, description="Path or URI of the uploaded land document")


class ApplicationAccepted(BaseModel):
    """Response for POST /v1/applications"""

    application_id: str
    status: str
    accepted: bool


class EvaluationAccepted(BaseModel):
    """Response for POST /v1/applications/{id}/evaluations"""

    application_id: str
    accepted: bool


class RiskFactorSchema(BaseModel):
    type: str
    description: str
    severity: str


class ConfidenceScoresSchema(BaseModel):
    ocr: float
    satellite: float
    overall: int


class FraudAnalysisSchema(BaseModel):
    """Latest fraud analysis of an application"""

    fraud_score: int
    risk_tier: Optional[str] = None
    verification_status: str
    size_difference: Optional[float] = None
    size_difference_percent: Optional[float] = None
    risk_factors: List[RiskFactorSchema] = []
    recommendations: List[str] = []
    confidence_scores: Optional[ConfidenceScoresSchema] = None
    analysis_metadata: Optional[Dict[str, Any]] = None


class StatusResponse(BaseModel):
    """Response for GET /v1/applications/{id}/status"""

    application_id: str
    status: str
    fraud_analysis: Optional[FraudAnalysisSchema] = None
    submitted_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class ApplicationDetails(BaseModel):
    application_id: str
    applicant_name: str
    loan_amount: float
    loan_purpose: str
    claimed_land_size_hectares: float
    land_location: LandLocation
    status: str
    submitted_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class ReportResponse(BaseModel):
    """Response for GET /v1/applications/{id}/report"""

    application: ApplicationDetails
    document_evidence: Optional[Dict[str, Any]] = None
    satellite_evidence: Optional[Dict[str, Any]] = None
    fraud_analysis: Optional[FraudAnalysisSchema] = None
    last_error: Optional[str] = None
    processing_time_ms: Optional[float] = None
    analysis_method: str = "satellite-ocr-cross-verification"


class ApplicationSummary(BaseModel):
    """Single application in a listing"""

    application_id: str
    applicant_name: str
    loan_amount: float
    claimed_land_size_hectares: float
    status: str
    risk_tier: Optional[str] = None
    fraud_score: Optional[int] = None
    submitted_at: Optional[datetime] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ApplicationListResponse(BaseModel):
    """Response for GET /v1/applications"""

    applications: List[ApplicationSummary]
    pagination: Pagination


class StatisticsResponse(BaseModel):
    """Response for GET /v1/statistics"""

    total_applications: int
    completed_applications: int
    failed_applications: int
    low_risk_applications: int
    medium_risk_applications: int
    high_risk_applications: int
    average_fraud_score: Optional[float] = None
    total_loan_amount: float
