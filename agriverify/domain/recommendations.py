"""Action items for loan officers, derived from a fraud analysis"""

from typing import Dict, List

from agriverify.domain.models import EvidenceBundle, FraudAnalysis, RiskTier, confidence_of
from agriverify.domain.risk_factors import (
    HIGH_LOAN_TO_LAND_RATIO,
    LOW_SATELLITE_CONFIDENCE,
    OCR_EXTRACTION_FAILED,
    SUSPICIOUS_COORDINATES,
)

LOW_OCR_CONFIDENCE_THRESHOLD = 50
LOW_SATELLITE_ANALYSIS_THRESHOLD = 40

RISK_FACTOR_RECOMMENDATIONS: Dict[str, str] = {
    HIGH_LOAN_TO_LAND_RATIO: "Loan amount appears high for claimed land size - verify market rates",
    LOW_SATELLITE_CONFIDENCE: "Satellite imagery is unreliable for this plot - schedule a ground survey",
    OCR_EXTRACTION_FAILED: "Request a land record that clearly states the plot area",
    SUSPICIOUS_COORDINATES: "Verify land location with official records",
}


def _tier_recommendations(analysis: FraudAnalysis) -> List[str]:
    difference = analysis.size_difference_percent

    if analysis.risk_tier == RiskTier.LOW:
        recommendations = ["Application appears legitimate - recommend approval with standard verification"]
        if analysis.fraud_score < 10:
            recommendations.append("Excellent match between claimed and detected land size")
    elif analysis.risk_tier == RiskTier.MEDIUM:
        recommendations = [
            "Requires manual review by loan officer",
            "Consider conducting physical site visit",
            "Verify documents with additional documentation",
        ]
        if difference is not None and difference > 25:
            recommendations.append("Significant discrepancy in land size - investigate further")
    else:
        recommendations = [
            "High fraud risk - recommend rejection or thorough investigation",
            "Mandatory physical verification required",
            "Review all submitted documents for authenticity",
        ]
        if difference is not None and difference > 50:
            recommendations.append("Extreme land size discrepancy detected - likely fraudulent claim")

    return recommendations


def _evidence_quality_recommendations(evidence: EvidenceBundle) -> List[str]:
    recommendations = []

    ocr_confidence = confidence_of(evidence.document)
    if ocr_confidence is not None and ocr_confidence < LOW_OCR_CONFIDENCE_THRESHOLD:
        recommendations.append("Poor document quality - request clearer document scan")

    satellite_confidence = confidence_of(evidence.satellite)
    if satellite_confidence is not None and satellite_confidence < LOW_SATELLITE_ANALYSIS_THRESHOLD:
        recommendations.append("Satellite analysis has low confidence - manual verification recommended")

    return recommendations


def generate_recommendations(analysis: FraudAnalysis, evidence: EvidenceBundle) -> List[str]:
    """
    Build the ordered recommendation list.

    Order: tier messages, then evidence-quality caveats, then one message per
    risk factor in the order the factors were raised.
    """
    recommendations = _tier_recommendations(analysis)
    recommendations.extend(_evidence_quality_recommendations(evidence))

    for factor in analysis.risk_factors:
        message = RISK_FACTOR_RECOMMENDATIONS.get(factor.type)
        if message:
            recommendations.append(message)

    return recommendations
