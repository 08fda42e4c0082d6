"""Data access layer for loan applications"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from agriverify.domain.models import (
    AnalysisMetadata,
    ApplicationStatus,
    ConfidenceScores,
    Coordinates,
    EvidenceBundle,
    FraudAnalysis,
    LoanClaim,
    RiskFactor,
    RiskTier,
    Severity,
    VerificationStatus,
    evidence_to_dict,
)
from agriverify.infrastructure.database.models import LoanApplicationRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def record_to_claim(record: LoanApplicationRecord) -> LoanClaim:
    return LoanClaim(
        claimed_land_size_hectares=record.claimed_land_size_hectares,
        loan_amount=record.loan_amount,
        location=Coordinates(latitude=record.latitude, longitude=record.longitude),
        document_reference=record.document_reference,
        applicant_name=record.applicant_name,
        loan_purpose=record.loan_purpose,
        land_address=record.land_address,
    )


def fraud_analysis_dict(record: LoanApplicationRecord) -> Optional[Dict[str, Any]]:
    """Stored fraud analysis, or None if no evaluation has produced one yet"""
    if record.fraud_score is None:
        return None
    return {
        "fraud_score": record.fraud_score,
        "risk_tier": record.risk_tier,
        "verification_status": record.verification_status,
        "size_difference": record.size_difference,
        "size_difference_percent": record.size_difference_percent,
        "risk_factors": record.risk_factors or [],
        "recommendations": record.recommendations or [],
        "confidence_scores": record.confidence_scores,
        "analysis_metadata": record.analysis_metadata,
    }


def record_to_fraud_analysis(record: LoanApplicationRecord) -> Optional[FraudAnalysis]:
    """Rebuild the stored fraud analysis as a domain object"""
    if record.fraud_score is None:
        return None
    confidence = record.confidence_scores or {}
    metadata = record.analysis_metadata or {}
    return FraudAnalysis(
        fraud_score=record.fraud_score,
        risk_tier=RiskTier(record.risk_tier),
        verification_status=VerificationStatus(record.verification_status),
        size_difference=record.size_difference,
        size_difference_percent=record.size_difference_percent,
        confidence_scores=ConfidenceScores(
            ocr=confidence.get("ocr"),
            satellite=confidence.get("satellite"),
            overall=confidence.get("overall"),
        ),
        analysis_metadata=AnalysisMetadata(
            claimed_size=metadata.get("claimed_size", record.claimed_land_size_hectares),
            ocr_extracted_size=metadata.get("ocr_extracted_size"),
            satellite_detected_size=metadata.get("satellite_detected_size"),
            calculation_method=metadata.get("calculation_method", "weighted-multi-factor"),
        ),
        risk_factors=[
            RiskFactor(type=factor["type"], description=factor["description"], severity=Severity(factor["severity"]))
            for factor in record.risk_factors or []
        ],
        recommendations=list(record.recommendations or []),
    )


class LoanApplicationRepository:
    """Repository for loan applications; callers own commit/rollback"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, claim: LoanClaim) -> LoanApplicationRecord:
        """Persist a new application in SUBMITTED state"""
        record = LoanApplicationRecord(
            applicant_name=claim.applicant_name,
            loan_purpose=claim.loan_purpose,
            loan_amount=claim.loan_amount,
            claimed_land_size_hectares=claim.claimed_land_size_hectares,
            latitude=claim.location.latitude,
            longitude=claim.location.longitude,
            land_address=claim.land_address,
            document_reference=claim.document_reference,
            status=ApplicationStatus.SUBMITTED.value,
            status_changed_at=utcnow(),
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def get(self, application_id: uuid.UUID) -> Optional[LoanApplicationRecord]:
        return (
            self.db.query(LoanApplicationRecord)
            .filter(LoanApplicationRecord.id == application_id)
            .first()
        )

    def try_start_processing(self, application_id: uuid.UUID) -> bool:
        """
        Atomically move the application into PROCESSING.

        Single conditional UPDATE; returns False when it is already PROCESSING.
        """
        updated = (
            self.db.query(LoanApplicationRecord)
            .filter(
                LoanApplicationRecord.id == application_id,
                LoanApplicationRecord.status != ApplicationStatus.PROCESSING.value,
            )
            .update(
                {
                    LoanApplicationRecord.status: ApplicationStatus.PROCESSING.value,
                    LoanApplicationRecord.status_changed_at: utcnow(),
                    LoanApplicationRecord.last_error: None,
                    LoanApplicationRecord.last_error_retryable: False,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def save_evidence(self, application_id: uuid.UUID, evidence: EvidenceBundle) -> None:
        (
            self.db.query(LoanApplicationRecord)
            .filter(LoanApplicationRecord.id == application_id)
            .update(
                {
                    LoanApplicationRecord.document_evidence: evidence_to_dict(evidence.document),
                    LoanApplicationRecord.satellite_evidence: evidence_to_dict(evidence.satellite),
                },
                synchronize_session=False,
            )
        )

    def complete(self, application_id: uuid.UUID, analysis: FraudAnalysis) -> bool:
        """Store the fraud analysis and finish the evaluation; False if no longer PROCESSING"""
        data = analysis.to_dict()
        now = utcnow()
        updated = (
            self.db.query(LoanApplicationRecord)
            .filter(
                LoanApplicationRecord.id == application_id,
                LoanApplicationRecord.status == ApplicationStatus.PROCESSING.value,
            )
            .update(
                {
                    LoanApplicationRecord.status: ApplicationStatus.COMPLETED.value,
                    LoanApplicationRecord.fraud_score: data["fraud_score"],
                    LoanApplicationRecord.risk_tier: data["risk_tier"],
                    LoanApplicationRecord.verification_status: data["verification_status"],
                    LoanApplicationRecord.size_difference: data["size_difference"],
                    LoanApplicationRecord.size_difference_percent: data["size_difference_percent"],
                    LoanApplicationRecord.risk_factors: data["risk_factors"],
                    LoanApplicationRecord.recommendations: data["recommendations"],
                    LoanApplicationRecord.confidence_scores: data["confidence_scores"],
                    LoanApplicationRecord.analysis_metadata: data["analysis_metadata"],
                    LoanApplicationRecord.status_changed_at: now,
                    LoanApplicationRecord.processed_at: now,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def mark_failed(self, application_id: uuid.UUID, reason: str, retryable: bool = False) -> bool:
        """Terminate a PROCESSING evaluation as FAILED and force manual review"""
        updated = (
            self.db.query(LoanApplicationRecord)
            .filter(
                LoanApplicationRecord.id == application_id,
                LoanApplicationRecord.status == ApplicationStatus.PROCESSING.value,
            )
            .update(
                {
                    LoanApplicationRecord.status: ApplicationStatus.FAILED.value,
                    LoanApplicationRecord.verification_status: VerificationStatus.NEEDS_REVIEW.value,
                    LoanApplicationRecord.last_error: reason,
                    LoanApplicationRecord.last_error_retryable: retryable,
                    LoanApplicationRecord.status_changed_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def find_stale_processing(self, changed_before: datetime) -> List[LoanApplicationRecord]:
        """Applications stuck in PROCESSING since before the cutoff"""
        return (
            self.db.query(LoanApplicationRecord)
            .filter(
                LoanApplicationRecord.status == ApplicationStatus.PROCESSING.value,
                LoanApplicationRecord.status_changed_at < changed_before,
            )
            .all()
        )

    def list_applications(
        self,
        status: Optional[ApplicationStatus] = None,
        risk_tier: Optional[RiskTier] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[LoanApplicationRecord], int]:
        """Newest-first page of applications plus the total matching count"""
        query = self.db.query(LoanApplicationRecord)
        if status:
            query = query.filter(LoanApplicationRecord.status == status.value)
        if risk_tier:
            query = query.filter(LoanApplicationRecord.risk_tier == risk_tier.value)

        total = query.count()
        items = (
            query.order_by(LoanApplicationRecord.submitted_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    def statistics(self) -> Dict[str, Any]:
        """Portfolio-wide counts by status and tier"""

        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        row = self.db.query(
            func.count(LoanApplicationRecord.id),
            count_where(LoanApplicationRecord.status == ApplicationStatus.COMPLETED.value),
            count_where(LoanApplicationRecord.status == ApplicationStatus.FAILED.value),
            count_where(LoanApplicationRecord.risk_tier == RiskTier.LOW.value),
            count_where(LoanApplicationRecord.risk_tier == RiskTier.MEDIUM.value),
            count_where(LoanApplicationRecord.risk_tier == RiskTier.HIGH.value),
            func.avg(LoanApplicationRecord.fraud_score),
            func.coalesce(func.sum(LoanApplicationRecord.loan_amount), 0),
        ).one()

        return {
            "total_applications": row[0],
            "completed_applications": row[1],
            "failed_applications": row[2],
            "low_risk_applications": row[3],
            "medium_risk_applications": row[4],
            "high_risk_applications": row[5],
            "average_fraud_score": round(float(row[6]), 2) if row[6] is not None else None,
            "total_loan_amount": float(row[7]),
        }
