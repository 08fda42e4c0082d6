"""Integration tests for the evaluation lifecycle"""

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import timedelta
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.exc import OperationalError
from agriverify.domain.exceptions import (
    ApplicationNotFoundError,
    DocumentExtractionError,
    EvaluationConflictError,
    SatelliteFetchError,
    ValidationError,
)
from agriverify.domain.models import ApplicationStatus, EvaluationTicket, RiskTier, VerificationStatus
from agriverify.infrastructure.database.models import LoanApplicationRecord
from agriverify.infrastructure.database.repositories import LoanApplicationRepository, utcnow


def load_record(db, application_id: str) -> LoanApplicationRecord:
    """Fresh read; the orchestrator commits through its own sessions"""
    db.expire_all()
    return LoanApplicationRepository(db).get(uuid.UUID(application_id))


def conflict_count() -> float:
    return REGISTRY.get_sample_value("agriverify_evaluation_conflicts_total") or 0.0


def failed_evaluation_count() -> float:
    return REGISTRY.get_sample_value("agriverify_evaluation_total", {"outcome": "FAILED"}) or 0.0


async def until_settled(orchestrator, application_id: str) -> None:
    """Let the finished task drop out of the in-flight registry"""
    for _ in range(100):
        if application_id not in orchestrator._tasks:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"Evaluation of {application_id} is still registered")


@pytest.mark.asyncio
async def test_evaluation_completes(db, orchestrator, sample_claim):
    application_id = orchestrator.register_application(sample_claim)
    assert orchestrator.get_status(application_id).status == ApplicationStatus.SUBMITTED

    outcome = await orchestrator.evaluate_now(application_id)

    assert outcome.status == ApplicationStatus.COMPLETED
    assert outcome.fraud_analysis.fraud_score == 2
    assert outcome.error is None

    view = orchestrator.get_status(application_id)
    assert view.status == ApplicationStatus.COMPLETED
    assert view.fraud_analysis["fraud_score"] == 2
    assert view.fraud_analysis["risk_tier"] == "LOW"
    assert view.fraud_analysis["verification_status"] == "APPROVED"
    assert view.processed_at is not None

    record = load_record(db, application_id)
    assert record.document_evidence["outcome"] == "present"
    assert record.document_evidence["land_size_hectares"] == 10.0
    assert record.satellite_evidence["land_size_hectares"] == 10.3
    assert record.last_error is None


@pytest.mark.asyncio
async def test_processing_is_committed_before_evidence_gathering(orchestrator, image_fetcher, sample_claim):
    image_fetcher.gate = asyncio.Event()
    application_id = orchestrator.register_application(sample_claim)

    ticket = await orchestrator.submit_evaluation(application_id)

    assert ticket == EvaluationTicket(application_id=application_id, accepted=True)
    view = orchestrator.get_status(application_id)
    assert view.status == ApplicationStatus.PROCESSING
    assert view.fraud_analysis is None

    image_fetcher.gate.set()
    outcome = await orchestrator.wait_for(application_id)
    assert outcome.status == ApplicationStatus.COMPLETED


@pytest.mark.asyncio
async def test_concurrent_submissions_conflict(orchestrator, image_fetcher, text_extractor, sample_claim):
    """Exactly one of two simultaneous submissions is accepted"""
    image_fetcher.gate = asyncio.Event()
    application_id = orchestrator.register_application(sample_claim)
    conflicts_before = conflict_count()

    results = await asyncio.gather(
        orchestrator.submit_evaluation(application_id),
        orchestrator.submit_evaluation(application_id),
        return_exceptions=True,
    )

    tickets = [r for r in results if isinstance(r, EvaluationTicket)]
    conflicts = [r for r in results if isinstance(r, EvaluationConflictError)]
    assert len(tickets) == 1
    assert len(conflicts) == 1
    assert conflict_count() == conflicts_before + 1

    image_fetcher.gate.set()
    outcome = await orchestrator.wait_for(application_id)

    assert outcome.status == ApplicationStatus.COMPLETED
    assert len(text_extractor.calls) == 1


@pytest.mark.asyncio
async def test_reevaluation_keeps_previous_result_until_replaced(
    orchestrator, image_fetcher, area_detector, sample_claim
):
    application_id = orchestrator.register_application(sample_claim)
    await orchestrator.evaluate_now(application_id)

    # Fresh imagery shows far less farmland than claimed
    image_fetcher.gate = asyncio.Event()
    area_detector.hectares = 16.0
    await orchestrator.reevaluate(application_id)

    in_flight = orchestrator.get_status(application_id)
    assert in_flight.status == ApplicationStatus.PROCESSING
    assert in_flight.fraud_analysis["fraud_score"] == 2

    with pytest.raises(EvaluationConflictError):
        await orchestrator.reevaluate(application_id)

    image_fetcher.gate.set()
    outcome = await orchestrator.wait_for(application_id)

    # 60% -> 75 * 0.6 = 45; (200 - 180) / 4 * 0.4 = 2
    assert outcome.fraud_analysis.fraud_score == 47
    view = orchestrator.get_status(application_id)
    assert view.status == ApplicationStatus.COMPLETED
    assert view.fraud_analysis["risk_tier"] == "MEDIUM"


@pytest.mark.asyncio
async def test_provider_failures_still_complete(db, orchestrator, text_extractor, image_fetcher, sample_claim):
    text_extractor.error = DocumentExtractionError("OCR service unreachable: connection refused")
    image_fetcher.error = SatelliteFetchError("All satellite providers failed: nasa-earth: 503")
    application_id = orchestrator.register_application(sample_claim)

    outcome = await orchestrator.evaluate_now(application_id)

    assert outcome.status == ApplicationStatus.COMPLETED
    assert outcome.fraud_analysis.fraud_score == 10
    assert outcome.fraud_analysis.size_difference is None
    assert [f.type for f in outcome.fraud_analysis.risk_factors] == ["OCR_EXTRACTION_FAILED"]

    record = load_record(db, application_id)
    assert record.document_evidence["outcome"] == "absent"
    assert record.satellite_evidence["reason"].startswith("satellite:")


@pytest.mark.asyncio
async def test_persistence_failure_marks_application_failed(db, orchestrator, sample_claim):
    application_id = orchestrator.register_application(sample_claim)

    with patch.object(
        LoanApplicationRepository,
        "save_evidence",
        side_effect=OperationalError("UPDATE loan_application", {}, Exception("database is locked")),
    ):
        outcome = await orchestrator.evaluate_now(application_id)

    assert outcome.status == ApplicationStatus.FAILED
    assert outcome.retryable is True
    assert "database is locked" in outcome.error

    record = load_record(db, application_id)
    assert record.status == ApplicationStatus.FAILED.value
    assert record.verification_status == "NEEDS_REVIEW"
    assert "Application record unavailable" in record.last_error

    # Asked again after the task is gone, the answer is the same
    await until_settled(orchestrator, application_id)
    later = await orchestrator.wait_for(application_id)
    assert later.status == ApplicationStatus.FAILED
    assert later.retryable is True
    assert later.fraud_analysis is None

    # A failed application can be evaluated again
    retry = await orchestrator.evaluate_now(application_id)
    assert retry.status == ApplicationStatus.COMPLETED
    record = load_record(db, application_id)
    assert record.last_error is None
    assert record.last_error_retryable is False


@pytest.mark.asyncio
async def test_unexpected_error_is_not_retryable(orchestrator, sample_claim):
    application_id = orchestrator.register_application(sample_claim)

    with patch(
        "agriverify.pipeline.orchestrator.analyze_fraud_risk",
        side_effect=RuntimeError("scoring exploded"),
    ):
        outcome = await orchestrator.evaluate_now(application_id)

    assert outcome.status == ApplicationStatus.FAILED
    assert outcome.retryable is False
    assert outcome.error == "scoring exploded"
    assert orchestrator.get_status(application_id).status == ApplicationStatus.FAILED

    await until_settled(orchestrator, application_id)
    assert (await orchestrator.wait_for(application_id)).retryable is False


@pytest.mark.asyncio
async def test_wait_for_after_completion_returns_stored_analysis(orchestrator, sample_claim):
    application_id = orchestrator.register_application(sample_claim)
    await orchestrator.submit_evaluation(application_id)
    await until_settled(orchestrator, application_id)

    outcome = await orchestrator.wait_for(application_id)

    assert outcome.status == ApplicationStatus.COMPLETED
    assert outcome.retryable is False
    analysis = outcome.fraud_analysis
    assert analysis.fraud_score == 2
    assert analysis.risk_tier == RiskTier.LOW
    assert analysis.verification_status == VerificationStatus.APPROVED
    assert analysis.size_difference_percent == 3.0
    assert analysis.confidence_scores.overall == 90
    assert analysis.analysis_metadata.satellite_detected_size == 10.3
    assert analysis.recommendations[0] == (
        "Application appears legitimate - recommend approval with standard verification"
    )


@pytest.mark.asyncio
async def test_wait_for_after_completion_rebuilds_risk_factors(orchestrator, text_extractor, sample_claim):
    text_extractor.error = DocumentExtractionError("OCR service unreachable: connection refused")
    application_id = orchestrator.register_application(sample_claim)
    in_flight = await orchestrator.evaluate_now(application_id)
    await until_settled(orchestrator, application_id)

    outcome = await orchestrator.wait_for(application_id)

    assert outcome.fraud_analysis.to_dict() == in_flight.fraud_analysis.to_dict()


@pytest.mark.asyncio
async def test_unknown_and_malformed_ids(orchestrator):
    with pytest.raises(ApplicationNotFoundError):
        await orchestrator.submit_evaluation(str(uuid.uuid4()))

    with pytest.raises(ValidationError):
        await orchestrator.submit_evaluation("not-a-uuid")

    with pytest.raises(ApplicationNotFoundError):
        orchestrator.get_status(str(uuid.uuid4()))


def test_register_rejects_invalid_claim(orchestrator, sample_claim):
    with pytest.raises(ValidationError):
        orchestrator.register_application(replace(sample_claim, claimed_land_size_hectares=0))

    with pytest.raises(ValidationError):
        orchestrator.register_application(replace(sample_claim, document_reference=""))


@pytest.mark.parametrize(
    "field,value",
    [
        ("claimed_land_size_hectares", float("nan")),
        ("claimed_land_size_hectares", float("inf")),
        ("loan_amount", float("nan")),
        ("loan_amount", float("inf")),
    ],
)
def test_register_rejects_non_finite_amounts(orchestrator, sample_claim, field, value):
    with pytest.raises(ValidationError):
        orchestrator.register_application(replace(sample_claim, **{field: value}))


@pytest.mark.asyncio
async def test_wait_for_without_evaluation_reports_record(orchestrator, sample_claim):
    application_id = orchestrator.register_application(sample_claim)

    outcome = await orchestrator.wait_for(application_id)

    assert outcome.status == ApplicationStatus.SUBMITTED
    assert outcome.fraud_analysis is None


def test_stale_processing_records_are_failed(db, orchestrator, sample_claim):
    """Records left PROCESSING by a crashed process are cleaned up"""
    stale_id = orchestrator.register_application(sample_claim)
    fresh_id = orchestrator.register_application(sample_claim)

    db.query(LoanApplicationRecord).filter(LoanApplicationRecord.id == uuid.UUID(stale_id)).update(
        {"status": "PROCESSING", "status_changed_at": utcnow() - timedelta(hours=2)},
        synchronize_session=False,
    )
    db.query(LoanApplicationRecord).filter(LoanApplicationRecord.id == uuid.UUID(fresh_id)).update(
        {"status": "PROCESSING", "status_changed_at": utcnow()},
        synchronize_session=False,
    )
    db.commit()

    failed = orchestrator.fail_stale_evaluations(max_age=timedelta(minutes=30))

    assert failed == [stale_id]
    assert orchestrator.get_status(stale_id).status == ApplicationStatus.FAILED
    assert orchestrator.get_status(fresh_id).status == ApplicationStatus.PROCESSING


@pytest.mark.asyncio
async def test_shutdown_fails_in_flight_evaluations(orchestrator, image_fetcher, sample_claim, caplog):
    image_fetcher.gate = asyncio.Event()
    application_id = orchestrator.register_application(sample_claim)
    await orchestrator.submit_evaluation(application_id)
    await asyncio.sleep(0.01)
    failed_before = failed_evaluation_count()

    with caplog.at_level(logging.INFO):
        await orchestrator.shutdown()

    outcome = await orchestrator.wait_for(application_id)
    assert outcome.status == ApplicationStatus.FAILED
    assert outcome.error == "Evaluation cancelled"
    assert outcome.retryable is False

    # Cancelled evaluations are counted and logged like any other failure
    assert failed_evaluation_count() == failed_before + 1
    finished = [r for r in caplog.records if r.getMessage() == "Evaluation finished"]
    assert [(r.application_id, r.status) for r in finished] == [(application_id, "FAILED")]
