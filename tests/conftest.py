# conftest.py
import pytest
from datetime import date
from httpx import AsyncClient
from httpx._transports.asgi import ASGITransport  # required for ASGI testing
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.insurance_database import get_db, Base, Claim

API_KEY = "test-key"


@pytest.fixture(autouse=True)
def api_keys(monkeypatch):
    monkeypatch.setenv("MY_API_KEYS", f"{API_KEY},other-key")


@pytest.fixture
def auth_headers():
    return {"X-API-Key": API_KEY}


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_claim(db_session):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "unique_claim_id": f"CLM-{counter['n']:04d}",
            "unique_beneficiary_id": f"BEN-{counter['n']:04d}",
            "beneficiary_name": "Ada Obi",
            "tpa_id": 1,
            "facility_id": 10,
            "batch_number": "BATCH-001",
            "primary_diagnosis": "Malaria",
            "treatment_procedure": "PCV, TAB PCM 1G TDS 5/7",
            "date_of_treatment": date(2024, 1, 15),
            "date_of_claim_submission": date(2024, 1, 20),
            "total_cost_of_care": 20000,
        }
        values.update(overrides)
        claim = Claim(**values)
        db_session.add(claim)
        db_session.commit()
        db_session.refresh(claim)
        return claim

    return _make


@pytest.fixture(scope="module")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(anyio_backend, db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
