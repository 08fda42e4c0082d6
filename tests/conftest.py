"""Pytest fixtures for testing"""

import os

# Point the service at the test database before anything reads settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from agriverify.api.main import create_app
from agriverify.domain.models import Coordinates, LoanClaim
from agriverify.domain.scoring import ScoringConfig
from agriverify.infrastructure.database.models import Base
from agriverify.infrastructure.database.session import get_db
from agriverify.pipeline.evidence import EvidenceAggregator
from agriverify.pipeline.orchestrator import EvaluationOrchestrator
from tests.fakes import FakeAreaDetector, FakeImageFetcher, FakeTextExtractor


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def text_extractor() -> FakeTextExtractor:
    return FakeTextExtractor(text="Land Record\nTotal Area: 10 hectares\nVillage: Hadapsar", confidence=90)


@pytest.fixture
def image_fetcher() -> FakeImageFetcher:
    return FakeImageFetcher()


@pytest.fixture
def area_detector() -> FakeAreaDetector:
    return FakeAreaDetector(hectares=10.3, confidence=90)


@pytest.fixture
def aggregator(text_extractor, image_fetcher, area_detector) -> EvidenceAggregator:
    return EvidenceAggregator(
        text_extractor=text_extractor,
        image_fetcher=image_fetcher,
        area_detector=area_detector,
        timeout=1.0,
    )


@pytest.fixture
def session_factory() -> sessionmaker:
    return TestingSessionLocal


@pytest.fixture
def orchestrator(db: Session, session_factory: sessionmaker, aggregator: EvidenceAggregator) -> EvaluationOrchestrator:
    """Orchestrator wired to the test database and fake providers"""
    return EvaluationOrchestrator(session_factory, aggregator=aggregator, scoring_config=ScoringConfig())


@pytest.fixture
def client(db: Session, orchestrator: EvaluationOrchestrator) -> Generator[TestClient, None, None]:
    """Create FastAPI test client with test database"""
    app = create_app(orchestrator)

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    # Context manager keeps one event loop alive so background evaluations can finish
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_claim() -> LoanClaim:
    """Honest farmer: 10 ha claimed near Pune"""
    return LoanClaim(
        claimed_land_size_hectares=10.0,
        loan_amount=500_000,
        location=Coordinates(latitude=18.52, longitude=73.85),
        document_reference="documents/land_record.txt",
        applicant_name="Asha Patil",
        land_address="Survey No. 42, Hadapsar, Pune",
    )
