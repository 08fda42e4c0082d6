"""Fraud scoring engine - core business logic for land-size verification"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from agriverify.domain.models import (
    AnalysisMetadata,
    ConfidenceScores,
    Evidence,
    EvidenceBundle,
    FraudAnalysis,
    LoanClaim,
    RiskTier,
    ScoreBreakdown,
    VerificationStatus,
    confidence_of,
    land_size_of,
)
from agriverify.domain.recommendations import generate_recommendations
from agriverify.domain.risk_factors import assess_risk_factors


@dataclass(frozen=True)
class ScoringConfig:
    """
    Thresholds and weights for the fraud score.

    Passed explicitly to every scoring function; nothing here is global state.
    """

    size_weight: float = 0.6
    ocr_confidence_weight: float = 0.2
    satellite_confidence_weight: float = 0.2
    default_confidence: float = 50.0
    document_mismatch_percent: float = 20.0
    document_mismatch_penalty: float = 20.0
    low_risk_max_score: int = 20
    medium_risk_max_score: int = 60
    max_loan_per_hectare: float = 100_000.0

    @classmethod
    def from_settings(cls, settings) -> "ScoringConfig":
        return cls(
            low_risk_max_score=settings.low_risk_max_score,
            medium_risk_max_score=settings.medium_risk_max_score,
            max_loan_per_hectare=settings.max_loan_per_hectare,
        )


DEFAULT_SCORING_CONFIG = ScoringConfig()


def calculate_size_difference_score(difference_percent: float) -> int:
    """
    Map claimed-vs-detected size difference to a 0-100 penalty.

    Tiered on purpose: small GPS/resolution noise costs nothing,
    large discrepancies are penalized sharply.
    - <= 5%:   0
    - <= 10%:  10
    - <= 20%:  25
    - <= 50%:  50
    - <= 100%: 75
    - above:   100
    """
    if difference_percent <= 5:
        return 0
    elif difference_percent <= 10:
        return 10
    elif difference_percent <= 20:
        return 25
    elif difference_percent <= 50:
        return 50
    elif difference_percent <= 100:
        return 75
    else:
        return 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_evidence(
    claimed_size: float,
    satellite: Evidence,
    document: Evidence,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ScoreBreakdown:
    """
    Calculate the fraud score (0 = consistent claim, 100 = almost certainly inflated).

    score = size_score * size_weight
            + confidence_penalty * (ocr_weight + satellite_weight)
            + document mismatch penalty

    Missing evidence never fails scoring: absent confidences default to 50,
    so a claim with no evidence at all lands on a cautious baseline.
    """
    detected_size = land_size_of(satellite)
    ocr_size = land_size_of(document)

    score = 0.0
    size_difference: Optional[float] = None
    size_difference_percent: Optional[float] = None

    # Primary comparison: claimed vs satellite-detected
    if claimed_size and detected_size is not None:
        size_difference = abs(claimed_size - detected_size)
        # Bucket on the reported 2-decimal percent so 3.0 vs 3.6 is exactly 20%
        size_difference_percent = round(size_difference / claimed_size * 100, 2)
        score += calculate_size_difference_score(size_difference_percent) * config.size_weight

    # Secondary: does the document agree with the claim?
    if claimed_size and ocr_size is not None:
        ocr_difference_percent = round(abs(claimed_size - ocr_size) / claimed_size * 100, 2)
        if ocr_difference_percent > config.document_mismatch_percent:
            score += config.document_mismatch_penalty

    # Lower confidence means more uncertainty, nudging the score up
    ocr_confidence = confidence_of(document)
    satellite_confidence = confidence_of(satellite)
    if ocr_confidence is None:
        ocr_confidence = config.default_confidence
    if satellite_confidence is None:
        satellite_confidence = config.default_confidence

    confidence_penalty = (200 - ocr_confidence - satellite_confidence) / 4
    score += confidence_penalty * (config.ocr_confidence_weight + config.satellite_confidence_weight)

    fraud_score = _round_half_up(min(100.0, max(0.0, score)))

    return ScoreBreakdown(
        fraud_score=fraud_score,
        size_difference=size_difference,
        size_difference_percent=size_difference_percent,
        confidence_scores=ConfidenceScores(
            ocr=ocr_confidence,
            satellite=satellite_confidence,
            overall=_round_half_up((ocr_confidence + satellite_confidence) / 2),
        ),
        analysis_metadata=AnalysisMetadata(
            claimed_size=claimed_size,
            ocr_extracted_size=ocr_size,
            satellite_detected_size=detected_size,
        ),
    )


def classify_risk(
    fraud_score: int,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> Tuple[RiskTier, VerificationStatus]:
    """
    Map fraud score to risk tier and verification disposition.

    Boundaries belong to the lower tier:
    - 0-20:   LOW    -> APPROVED
    - 21-60:  MEDIUM -> NEEDS_REVIEW
    - 61-100: HIGH   -> REJECTED
    """
    if fraud_score <= config.low_risk_max_score:
        return RiskTier.LOW, VerificationStatus.APPROVED
    elif fraud_score <= config.medium_risk_max_score:
        return RiskTier.MEDIUM, VerificationStatus.NEEDS_REVIEW
    else:
        return RiskTier.HIGH, VerificationStatus.REJECTED


def analyze_fraud_risk(
    claim: LoanClaim,
    evidence: EvidenceBundle,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> FraudAnalysis:
    """
    Main entry point: score, classify, flag and recommend.

    Returns complete FraudAnalysis. Pure: same inputs, same result.
    """
    breakdown = score_evidence(
        claim.claimed_land_size_hectares,
        evidence.satellite,
        evidence.document,
        config,
    )
    risk_tier, verification_status = classify_risk(breakdown.fraud_score, config)
    risk_factors = assess_risk_factors(claim, evidence, config.max_loan_per_hectare)

    analysis = FraudAnalysis(
        fraud_score=breakdown.fraud_score,
        risk_tier=risk_tier,
        verification_status=verification_status,
        size_difference=breakdown.size_difference,
        size_difference_percent=breakdown.size_difference_percent,
        confidence_scores=breakdown.confidence_scores,
        analysis_metadata=breakdown.analysis_metadata,
        risk_factors=risk_factors,
    )
    analysis.recommendations = generate_recommendations(analysis, evidence)
    return analysis
