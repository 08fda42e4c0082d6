"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ApplicationStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RiskTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    REJECTED = "REJECTED"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LoanClaim:
    """What the borrower asserts about the land and the loan"""

    claimed_land_size_hectares: float
    loan_amount: float
    location: Coordinates
    document_reference: str
    applicant_name: str = ""
    loan_purpose: str = "agriculture"
    land_address: Optional[str] = None


# Evidence: either a measurement was obtained or it was not.
# For document evidence, Present.value is None when text was read but held no land size.


@dataclass(frozen=True)
class Present:
    confidence: float
    value: Optional[float] = None  # hectares
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Absent:
    reason: str


Evidence = Union[Present, Absent]


def land_size_of(evidence: Evidence) -> Optional[float]:
    """Measured hectares, or None when the evidence carries no measurement"""
    if isinstance(evidence, Present):
        return evidence.value
    return None


def confidence_of(evidence: Evidence) -> Optional[float]:
    if isinstance(evidence, Present):
        return evidence.confidence
    return None


def evidence_to_dict(evidence: Evidence) -> Dict[str, Any]:
    """Serialize evidence for the application record snapshot"""
    if isinstance(evidence, Present):
        return {
            "outcome": "present",
            "land_size_hectares": evidence.value,
            "confidence": evidence.confidence,
            "details": evidence.details,
        }
    return {"outcome": "absent", "reason": evidence.reason}


@dataclass(frozen=True)
class EvidenceBundle:
    """Everything the providers produced for one evaluation"""

    document: Evidence
    satellite: Evidence


@dataclass
class ExtractedText:
    """Raw output of the document text extractor"""

    text: str
    confidence: float


@dataclass
class LandSizeReading:
    """A land size recognised in document text, normalised to hectares"""

    hectares: float
    confidence: float
    unit: str
    original_value: float


@dataclass
class SatelliteImage:
    """Imagery fetched for a plot; image_reference is a local path"""

    image_reference: str
    source: str
    capture_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DetectedArea:
    hectares: float
    confidence: float


@dataclass
class RiskFactor:
    """Qualitative red flag; never feeds back into the fraud score"""

    type: str
    description: str
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description, "severity": self.severity.value}


@dataclass
class ConfidenceScores:
    ocr: float
    satellite: float
    overall: int


@dataclass
class AnalysisMetadata:
    """Every input value the score was computed from, for audit"""

    claimed_size: float
    ocr_extracted_size: Optional[float]
    satellite_detected_size: Optional[float]
    calculation_method: str = "weighted-multi-factor"


@dataclass
class ScoreBreakdown:
    """Output of the scoring engine before classification"""

    fraud_score: int
    size_difference: Optional[float]
    size_difference_percent: Optional[float]
    confidence_scores: ConfidenceScores
    analysis_metadata: AnalysisMetadata


@dataclass
class FraudAnalysis:
    """Complete outcome of a fraud assessment"""

    fraud_score: int
    risk_tier: RiskTier
    verification_status: VerificationStatus
    size_difference: Optional[float]
    size_difference_percent: Optional[float]
    confidence_scores: ConfidenceScores
    analysis_metadata: AnalysisMetadata
    risk_factors: List[RiskFactor] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fraud_score": self.fraud_score,
            "risk_tier": self.risk_tier.value,
            "verification_status": self.verification_status.value,
            "size_difference": self.size_difference,
            "size_difference_percent": self.size_difference_percent,
            "confidence_scores": {
                "ocr": self.confidence_scores.ocr,
                "satellite": self.confidence_scores.satellite,
                "overall": self.confidence_scores.overall,
            },
            "analysis_metadata": {
                "claimed_size": self.analysis_metadata.claimed_size,
                "ocr_extracted_size": self.analysis_metadata.ocr_extracted_size,
                "satellite_detected_size": self.analysis_metadata.satellite_detected_size,
                "calculation_method": self.analysis_metadata.calculation_method,
            },
            "risk_factors": [factor.to_dict() for factor in self.risk_factors],
            "recommendations": list(self.recommendations),
        }


@dataclass
class EvaluationTicket:
    application_id: str
    accepted: bool


@dataclass
class EvaluationOutcome:
    """Completion record of one supervised evaluation"""

    application_id: str
    status: ApplicationStatus
    fraud_analysis: Optional[FraudAnalysis] = None
    error: Optional[str] = None
    retryable: bool = False


@dataclass
class ApplicationStatusView:
    application_id: str
    status: ApplicationStatus
    fraud_analysis: Optional[Dict[str, Any]]
    submitted_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
