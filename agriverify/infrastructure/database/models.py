"""SQLAlchemy ORM models for loan applications"""

import uuid
from sqlalchemy import Boolean, Column, Float, DateTime, Integer, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from agriverify.domain.models import ApplicationStatus, VerificationStatus

Base = declarative_base()


class LoanApplicationRecord(Base):
    """Loan application with its evidence snapshot and latest fraud analysis"""

    __tablename__ = "loan_application"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Claim (immutable after creation)
    applicant_name = Column(Text, nullable=False, default="")
    loan_purpose = Column(Text, nullable=False, default="agriculture")
    loan_amount = Column(Float, nullable=False)
    claimed_land_size_hectares = Column(Float, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    land_address = Column(Text, nullable=True)
    document_reference = Column(Text, nullable=False)

    # Lifecycle
    status = Column(Text, nullable=False, default=ApplicationStatus.SUBMITTED.value, index=True)
    last_error = Column(Text, nullable=True)
    last_error_retryable = Column(Boolean, nullable=False, default=False)

    # Evidence snapshot
    document_evidence = Column(JSON, nullable=True)
    satellite_evidence = Column(JSON, nullable=True)

    # Fraud analysis (overwritten by each completed evaluation)
    fraud_score = Column(Integer, nullable=True)
    risk_tier = Column(Text, nullable=True, index=True)
    verification_status = Column(Text, nullable=False, default=VerificationStatus.PENDING.value)
    size_difference = Column(Float, nullable=True)
    size_difference_percent = Column(Float, nullable=True)
    risk_factors = Column(JSON, nullable=True)
    recommendations = Column(JSON, nullable=True)
    confidence_scores = Column(JSON, nullable=True)
    analysis_metadata = Column(JSON, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
