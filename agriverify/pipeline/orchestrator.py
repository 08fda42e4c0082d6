"""Evaluation orchestrator - application lifecycle and supervised evaluation tasks.

States: SUBMITTED -> PROCESSING -> COMPLETED | FAILED
COMPLETED and FAILED may re-enter PROCESSING; PROCESSING never can.

Every entry into PROCESSING is committed before evidence gathering starts, so
a crash mid-pipeline leaves the record visibly PROCESSING for cleanup.
"""

import asyncio
import logging
import math
import time
import uuid
from contextlib import contextmanager
from datetime import timedelta
from typing import Dict, Iterator, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from agriverify.config import settings
from agriverify.domain.exceptions import (
    ApplicationNotFoundError,
    EvaluationConflictError,
    PersistenceFailure,
    ValidationError,
)
from agriverify.domain.models import (
    ApplicationStatus,
    ApplicationStatusView,
    EvaluationOutcome,
    EvaluationTicket,
    FraudAnalysis,
    LoanClaim,
)
from agriverify.domain.scoring import ScoringConfig, analyze_fraud_risk
from agriverify.infrastructure.database.repositories import (
    LoanApplicationRepository,
    fraud_analysis_dict,
    record_to_claim,
    record_to_fraud_analysis,
    utcnow,
)
from agriverify.infrastructure.observability.logging import log_evaluation
from agriverify.infrastructure.observability.metrics import (
    evaluation_conflict_counter,
    record_evaluation,
)
from agriverify.pipeline.evidence import EvidenceAggregator


def parse_application_id(application_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(application_id))
    except ValueError:
        raise ValidationError(f"Invalid application ID format: {application_id}")


def validate_claim(claim: LoanClaim) -> None:
    # NaN compares False against everything, so check finiteness first
    size = claim.claimed_land_size_hectares
    if not size or not math.isfinite(size) or size <= 0:
        raise ValidationError("Claimed land size must be a positive number")
    if not claim.loan_amount or not math.isfinite(claim.loan_amount) or claim.loan_amount <= 0:
        raise ValidationError("Loan amount must be a positive number")
    if not -90 <= claim.location.latitude <= 90:
        raise ValidationError(f"Latitude out of range: {claim.location.latitude}")
    if not -180 <= claim.location.longitude <= 180:
        raise ValidationError(f"Longitude out of range: {claim.location.longitude}")
    if not claim.document_reference:
        raise ValidationError("Document reference is required")


class EvaluationOrchestrator:
    """
    Owns every write to an application's status, evidence and fraud analysis.

    Each evaluation runs as its own asyncio task; wait_for() is the
    completion/failure channel for callers that need the outcome.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        aggregator: EvidenceAggregator | None = None,
        scoring_config: ScoringConfig | None = None,
    ):
        self.session_factory = session_factory
        self.aggregator = aggregator or EvidenceAggregator()
        self.scoring_config = scoring_config or ScoringConfig.from_settings(settings)
        self._tasks: Dict[str, asyncio.Task] = {}

    @contextmanager
    def _repository(self) -> Iterator[LoanApplicationRepository]:
        """One short transaction; database errors surface as PersistenceFailure"""
        db = self.session_factory()
        try:
            yield LoanApplicationRepository(db)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Application record unavailable: {e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def register_application(self, claim: LoanClaim) -> str:
        """Create a SUBMITTED application and return its id"""
        validate_claim(claim)
        with self._repository() as repo:
            record = repo.create(claim)
            application_id = str(record.id)

        logging.info("Application registered", extra={"application_id": application_id})
        return application_id

    async def submit_evaluation(self, application_id: str) -> EvaluationTicket:
        """
        Start an evaluation in the background.

        Raises:
            ValidationError: Malformed id
            ApplicationNotFoundError: Unknown application
            EvaluationConflictError: An evaluation is already PROCESSING
            PersistenceFailure: The record could not be read or updated
        """
        app_uuid = parse_application_id(application_id)
        self._launch(app_uuid)
        return EvaluationTicket(application_id=str(app_uuid), accepted=True)

    async def reevaluate(self, application_id: str) -> EvaluationTicket:
        """Re-run the pipeline for a COMPLETED or FAILED application"""
        return await self.submit_evaluation(application_id)

    async def evaluate_now(self, application_id: str) -> EvaluationOutcome:
        """Submit an evaluation and wait for its outcome"""
        app_uuid = parse_application_id(application_id)
        task = self._launch(app_uuid)
        return await asyncio.shield(task)

    async def wait_for(self, application_id: str) -> EvaluationOutcome:
        """
        Outcome of the latest evaluation.

        Waits if one is in flight in this process; otherwise reports what the
        record holds. Cancelling the waiter does not cancel the evaluation.
        """
        app_uuid = parse_application_id(application_id)
        task = self._tasks.get(str(app_uuid))
        if task is not None:
            return await asyncio.shield(task)

        with self._repository() as repo:
            record = repo.get(app_uuid)
            if record is None:
                raise ApplicationNotFoundError(f"Loan application not found: {application_id}")
            status = ApplicationStatus(record.status)
            return EvaluationOutcome(
                application_id=str(app_uuid),
                status=status,
                fraud_analysis=record_to_fraud_analysis(record) if status == ApplicationStatus.COMPLETED else None,
                error=record.last_error,
                retryable=status == ApplicationStatus.FAILED and bool(record.last_error_retryable),
            )

    def get_status(self, application_id: str) -> ApplicationStatusView:
        app_uuid = parse_application_id(application_id)
        with self._repository() as repo:
            record = repo.get(app_uuid)
            if record is None:
                raise ApplicationNotFoundError(f"Loan application not found: {application_id}")
            return ApplicationStatusView(
                application_id=str(app_uuid),
                status=ApplicationStatus(record.status),
                fraud_analysis=fraud_analysis_dict(record),
                submitted_at=record.submitted_at,
                processed_at=record.processed_at,
            )

    def fail_stale_evaluations(self, max_age: timedelta | None = None) -> List[str]:
        """Move evaluations stuck in PROCESSING (e.g. after a crash) to FAILED"""
        if max_age is None:
            max_age = timedelta(minutes=settings.stale_processing_minutes)
        cutoff = utcnow() - max_age

        failed = []
        with self._repository() as repo:
            for record in repo.find_stale_processing(cutoff):
                key = str(record.id)
                if key in self._tasks:
                    continue  # still running here
                if repo.mark_failed(record.id, f"Evaluation abandoned in PROCESSING for over {max_age}"):
                    failed.append(key)

        if failed:
            logging.warning("Stale evaluations failed", extra={"application_ids": failed})
        return failed

    async def shutdown(self) -> None:
        """Cancel in-flight evaluations; each ends FAILED"""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _launch(self, app_uuid: uuid.UUID) -> asyncio.Task:
        """Commit the PROCESSING transition, then hand the pipeline to a task"""
        with self._repository() as repo:
            if repo.get(app_uuid) is None:
                raise ApplicationNotFoundError(f"Loan application not found: {app_uuid}")
            if not repo.try_start_processing(app_uuid):
                evaluation_conflict_counter.inc()
                raise EvaluationConflictError(f"Application {app_uuid} is already being processed")

        key = str(app_uuid)
        task = asyncio.create_task(self._supervise(app_uuid), name=f"evaluation-{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda finished: self._forget(key, finished))

        logging.info("Evaluation accepted", extra={"application_id": key, "step": "evaluation_start"})
        return task

    def _forget(self, key: str, finished: asyncio.Task) -> None:
        if self._tasks.get(key) is finished:
            del self._tasks[key]

    async def _supervise(self, app_uuid: uuid.UUID) -> EvaluationOutcome:
        """Run the pipeline; any error ends in a FAILED transition, never a stuck record"""
        key = str(app_uuid)
        start_time = time.time()

        try:
            analysis = await self._run_pipeline(app_uuid)
        except asyncio.CancelledError:
            self._mark_failed(app_uuid, "Evaluation cancelled")
            self._report(
                EvaluationOutcome(application_id=key, status=ApplicationStatus.FAILED, error="Evaluation cancelled"),
                start_time,
            )
            raise
        except Exception as e:
            logging.exception(f"Evaluation failed: {e}", extra={"application_id": key})
            retryable = isinstance(e, PersistenceFailure)
            self._mark_failed(app_uuid, str(e), retryable)
            outcome = EvaluationOutcome(
                application_id=key,
                status=ApplicationStatus.FAILED,
                error=str(e),
                retryable=retryable,
            )
        else:
            outcome = EvaluationOutcome(
                application_id=key,
                status=ApplicationStatus.COMPLETED,
                fraud_analysis=analysis,
            )

        self._report(outcome, start_time)
        return outcome

    def _report(self, outcome: EvaluationOutcome, start_time: float) -> None:
        risk_tier = outcome.fraud_analysis.risk_tier.value if outcome.fraud_analysis else None
        record_evaluation(outcome.status.value, risk_tier)
        log_evaluation(
            outcome.application_id,
            outcome.status.value,
            outcome.fraud_analysis.fraud_score if outcome.fraud_analysis else None,
            risk_tier,
            (time.time() - start_time) * 1000,
        )

    async def _run_pipeline(self, app_uuid: uuid.UUID) -> FraudAnalysis:
        with self._repository() as repo:
            record = repo.get(app_uuid)
            if record is None:
                raise PersistenceFailure(f"Application record {app_uuid} disappeared during evaluation")
            claim = record_to_claim(record)

        evidence = await self.aggregator.collect(claim.document_reference, claim.location, str(app_uuid))

        with self._repository() as repo:
            repo.save_evidence(app_uuid, evidence)

        analysis = analyze_fraud_risk(claim, evidence, self.scoring_config)

        with self._repository() as repo:
            if not repo.complete(app_uuid, analysis):
                raise PersistenceFailure(f"Application {app_uuid} left PROCESSING before its result was stored")

        return analysis

    def _mark_failed(self, app_uuid: uuid.UUID, reason: str, retryable: bool = False) -> None:
        try:
            with self._repository() as repo:
                repo.mark_failed(app_uuid, reason, retryable)
        except PersistenceFailure:
            logging.exception("Failed to update application status", extra={"application_id": str(app_uuid)})
