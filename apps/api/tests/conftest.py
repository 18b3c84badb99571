"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created fresh for each test
- Factories for patients, deals, stages, services, users and workflows
- HTTPX AsyncClient wired to the test session
"""
import os
import uuid
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Settings require a DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from clinic_api.core.deps import get_db
from clinic_api.db.base import Base
from clinic_api.db.enums import WorkflowTriggerType
from clinic_api.db.models import (
    Deal,
    DealStage,
    Patient,
    Service,
    User,
    Workflow,
    WorkflowAction,
)
from clinic_api.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_engine():
    """One shared in-memory connection per test so every session sees the same data."""
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_patient(db: Session):
    def _make(**kwargs) -> Patient:
        values = {
            "first_name": "Ana",
            "last_name": "Silva",
            "email": "ana@example.com",
            "phone": "+41790000000",
        }
        values.update(kwargs)
        patient = Patient(**values)
        db.add(patient)
        db.commit()
        return patient

    return _make


@pytest.fixture
def make_stage(db: Session):
    def _make(name: str = "Consultation", type: str = "open") -> DealStage:
        stage = DealStage(name=name, type=type)
        db.add(stage)
        db.commit()
        return stage

    return _make


@pytest.fixture
def make_service(db: Session):
    def _make(name: str = "Botox") -> Service:
        service = Service(name=name)
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def make_deal(db: Session):
    def _make(patient: Patient, **kwargs) -> Deal:
        values = {"title": "Lip filler", "pipeline": "Aesthetics"}
        values.update(kwargs)
        deal = Deal(patient_id=patient.id, **values)
        db.add(deal)
        db.commit()
        return deal

    return _make


@pytest.fixture
def make_user(db: Session):
    def _make(full_name: str | None = "Dr. Keller", email: str | None = None) -> User:
        user = User(full_name=full_name, email=email or f"{uuid.uuid4().hex[:8]}@clinic.test")
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_workflow(db: Session):
    def _make(
        config: dict | None = None,
        actions: list[tuple[str, dict]] | None = None,
        active: bool = True,
        name: str = "Stage automation",
    ) -> Workflow:
        workflow = Workflow(
            name=name,
            trigger_type=WorkflowTriggerType.DEAL_STAGE_CHANGED.value,
            active=active,
            config=config or {},
        )
        db.add(workflow)
        db.flush()
        for index, (action_type, action_config) in enumerate(actions or []):
            db.add(
                WorkflowAction(
                    workflow_id=workflow.id,
                    action_type=action_type,
                    config=action_config,
                    sort_order=index,
                )
            )
        db.commit()
        return workflow

    return _make


@pytest.fixture
def deal_context(make_patient, make_deal, make_stage):
    """A patient with a deal and two stages to move it between."""
    patient = make_patient()
    deal = make_deal(patient)
    from_stage = make_stage("Lead")
    to_stage = make_stage("Consultation")
    return {"patient": patient, "deal": deal, "from_stage": from_stage, "to_stage": to_stage}


# =============================================================================
# HTTP Client
# =============================================================================

@pytest.fixture
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Async client whose requests use the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
