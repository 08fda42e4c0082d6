"""Rule-based red flags that accompany the fraud score"""

from typing import List

from agriverify.domain.models import (
    Absent,
    EvidenceBundle,
    LoanClaim,
    RiskFactor,
    Severity,
    confidence_of,
    land_size_of,
)

HIGH_LOAN_TO_LAND_RATIO = "HIGH_LOAN_TO_LAND_RATIO"
LOW_SATELLITE_CONFIDENCE = "LOW_SATELLITE_CONFIDENCE"
OCR_EXTRACTION_FAILED = "OCR_EXTRACTION_FAILED"
SUSPICIOUS_COORDINATES = "SUSPICIOUS_COORDINATES"

LOW_SATELLITE_CONFIDENCE_THRESHOLD = 30
MAX_PLAUSIBLE_LATITUDE = 80


def assess_risk_factors(
    claim: LoanClaim,
    evidence: EvidenceBundle,
    max_loan_per_hectare: float,
) -> List[RiskFactor]:
    """
    Evaluate every rule regardless of the numeric score.

    Order is fixed (loan ratio, satellite confidence, OCR, coordinates) so
    downstream recommendations come out in a stable order.
    """
    risk_factors = []

    if claim.loan_amount and claim.claimed_land_size_hectares:
        loan_per_hectare = claim.loan_amount / claim.claimed_land_size_hectares
        if loan_per_hectare > max_loan_per_hectare:
            risk_factors.append(
                RiskFactor(
                    type=HIGH_LOAN_TO_LAND_RATIO,
                    description="Loan amount is unusually high relative to claimed land size",
                    severity=Severity.MEDIUM,
                )
            )

    satellite_confidence = confidence_of(evidence.satellite)
    if satellite_confidence is not None and satellite_confidence < LOW_SATELLITE_CONFIDENCE_THRESHOLD:
        risk_factors.append(
            RiskFactor(
                type=LOW_SATELLITE_CONFIDENCE,
                description="Satellite image analysis has low confidence",
                severity=Severity.LOW,
            )
        )

    if land_size_of(evidence.document) is None:
        if isinstance(evidence.document, Absent):
            description = f"Document text extraction failed: {evidence.document.reason}"
        else:
            description = "Could not extract land size from submitted document"
        risk_factors.append(
            RiskFactor(
                type=OCR_EXTRACTION_FAILED,
                description=description,
                severity=Severity.MEDIUM,
            )
        )

    latitude = claim.location.latitude
    longitude = claim.location.longitude
    if abs(latitude) > MAX_PLAUSIBLE_LATITUDE or (latitude == 0 and longitude == 0):
        risk_factors.append(
            RiskFactor(
                type=SUSPICIOUS_COORDINATES,
                description="Land coordinates appear to be in an unusual or invalid location",
                severity=Severity.HIGH,
            )
        )

    return risk_factors
