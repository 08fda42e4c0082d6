"""Unit tests for risk factor rules"""

from agriverify.domain.models import (
    Absent,
    Coordinates,
    EvidenceBundle,
    LoanClaim,
    Present,
    Severity,
)
from agriverify.domain.risk_factors import assess_risk_factors

MAX_LOAN_PER_HECTARE = 100_000


def make_claim(claimed=10.0, loan_amount=500_000, latitude=18.52, longitude=73.85):
    return LoanClaim(
        claimed_land_size_hectares=claimed,
        loan_amount=loan_amount,
        location=Coordinates(latitude=latitude, longitude=longitude),
        document_reference="documents/land_record.txt",
    )


def good_evidence():
    return EvidenceBundle(
        document=Present(confidence=90, value=10.0),
        satellite=Present(confidence=90, value=10.3),
    )


def factor_types(factors):
    return [factor.type for factor in factors]


def test_clean_application_has_no_risk_factors():
    assert assess_risk_factors(make_claim(), good_evidence(), MAX_LOAN_PER_HECTARE) == []


def test_high_loan_to_land_ratio():
    """2,000,000 over 10 ha is 200k per hectare"""
    factors = assess_risk_factors(make_claim(loan_amount=2_000_000), good_evidence(), MAX_LOAN_PER_HECTARE)

    assert factor_types(factors) == ["HIGH_LOAN_TO_LAND_RATIO"]
    assert factors[0].severity == Severity.MEDIUM


def test_loan_ratio_at_limit_is_not_flagged():
    factors = assess_risk_factors(make_claim(loan_amount=1_000_000), good_evidence(), MAX_LOAN_PER_HECTARE)

    assert factors == []


def test_low_satellite_confidence():
    evidence = EvidenceBundle(
        document=Present(confidence=90, value=10.0),
        satellite=Present(confidence=29, value=10.3),
    )

    factors = assess_risk_factors(make_claim(), evidence, MAX_LOAN_PER_HECTARE)

    assert factor_types(factors) == ["LOW_SATELLITE_CONFIDENCE"]
    assert factors[0].severity == Severity.LOW


def test_satellite_confidence_at_threshold_is_not_flagged():
    evidence = EvidenceBundle(
        document=Present(confidence=90, value=10.0),
        satellite=Present(confidence=30, value=10.3),
    )

    assert assess_risk_factors(make_claim(), evidence, MAX_LOAN_PER_HECTARE) == []


def test_missing_satellite_is_not_low_confidence():
    """No satellite evidence means no confidence to judge"""
    evidence = EvidenceBundle(
        document=Present(confidence=90, value=10.0),
        satellite=Absent(reason="satellite: All satellite providers failed"),
    )

    assert assess_risk_factors(make_claim(), evidence, MAX_LOAN_PER_HECTARE) == []


def test_ocr_extraction_failed_when_document_absent():
    evidence = EvidenceBundle(
        document=Absent(reason="ocr: OCR service timeout after 10.0s"),
        satellite=Present(confidence=90, value=10.3),
    )

    factors = assess_risk_factors(make_claim(), evidence, MAX_LOAN_PER_HECTARE)

    assert factor_types(factors) == ["OCR_EXTRACTION_FAILED"]
    assert factors[0].severity == Severity.MEDIUM
    assert "OCR service timeout" in factors[0].description


def test_ocr_extraction_failed_when_no_size_in_text():
    evidence = EvidenceBundle(
        document=Present(confidence=85, value=None),
        satellite=Present(confidence=90, value=10.3),
    )

    factors = assess_risk_factors(make_claim(), evidence, MAX_LOAN_PER_HECTARE)

    assert factor_types(factors) == ["OCR_EXTRACTION_FAILED"]
    assert factors[0].description == "Could not extract land size from submitted document"


def test_null_island_coordinates_are_suspicious():
    factors = assess_risk_factors(make_claim(latitude=0, longitude=0), good_evidence(), MAX_LOAN_PER_HECTARE)

    assert factor_types(factors) == ["SUSPICIOUS_COORDINATES"]
    assert factors[0].severity == Severity.HIGH


def test_polar_latitude_is_suspicious():
    factors = assess_risk_factors(make_claim(latitude=-80.5, longitude=10), good_evidence(), MAX_LOAN_PER_HECTARE)

    assert factor_types(factors) == ["SUSPICIOUS_COORDINATES"]


def test_equator_or_prime_meridian_alone_is_fine():
    assert assess_risk_factors(make_claim(latitude=0, longitude=32.5), good_evidence(), MAX_LOAN_PER_HECTARE) == []
    assert assess_risk_factors(make_claim(latitude=80, longitude=0), good_evidence(), MAX_LOAN_PER_HECTARE) == []


def test_all_factors_in_fixed_order():
    evidence = EvidenceBundle(
        document=Absent(reason="ocr: unreadable"),
        satellite=Present(confidence=10, value=3.0),
    )

    factors = assess_risk_factors(
        make_claim(loan_amount=5_000_000, latitude=0, longitude=0),
        evidence,
        MAX_LOAN_PER_HECTARE,
    )

    assert factor_types(factors) == [
        "HIGH_LOAN_TO_LAND_RATIO",
        "LOW_SATELLITE_CONFIDENCE",
        "OCR_EXTRACTION_FAILED",
        "SUSPICIOUS_COORDINATES",
    ]
