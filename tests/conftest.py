from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from country_sync import models
from country_sync.database import get_db
from country_sync.dependencies import get_renderer, get_source_client
from country_sync.errors import ExternalServiceError
from country_sync.schemas import ExchangeRateSnapshot
from country_sync.services.image_generator import SummaryImageRenderer
from country_sync.services.sources import COUNTRIES_SOURCE, RATES_SOURCE


def make_snapshot(rates):
    return ExchangeRateSnapshot(base_code="USD", rates=rates, fetched_at=datetime.now(timezone.utc))


class FakeSourceClient:
    """Stands in for SourceClient; records the order of fetch calls."""

    def __init__(self, countries=None, rates=None, fail=None):
        self.countries = countries or []
        self.rates = rates or {}
        self.fail = fail
        self.calls = []

    def fetch_countries(self):
        self.calls.append("countries")
        if self.fail == "countries":
            raise ExternalServiceError(COUNTRIES_SOURCE, "connection refused")
        return [dict(c) for c in self.countries]

    def fetch_exchange_rates(self):
        self.calls.append("rates")
        if self.fail == "rates":
            raise ExternalServiceError(RATES_SOURCE, "returned HTTP 500")
        return make_snapshot(self.rates)


@pytest.fixture()
def session_factory():
    # StaticPool keeps a single in-memory DB across threads/requests
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def renderer(tmp_path):
    return SummaryImageRenderer(tmp_path / "cache" / "summary.png")


@pytest.fixture()
def fake_client():
    return FakeSourceClient()


@pytest.fixture()
def api(session_factory, renderer, fake_client):
    from country_sync.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_renderer] = lambda: renderer
    app.dependency_overrides[get_source_client] = lambda: fake_client
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed_countries(session):
    now = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)
    data = [
        models.Country(
            name="Alpha",
            capital="A",
            region="Africa",
            population=100,
            currency_code="AAA",
            exchange_rate=Decimal("2.0"),
            estimated_gdp=Decimal("1000.00"),
            last_refreshed_at=now,
        ),
        models.Country(
            name="Bravo",
            capital="B",
            region="Europe",
            population=200,
            currency_code="BBB",
            exchange_rate=None,
            estimated_gdp=None,
            last_refreshed_at=now,
        ),
        models.Country(
            name="Charlie",
            capital="C",
            region="africa",
            population=300,
            currency_code="bbb",
            exchange_rate=Decimal("3.0"),
            estimated_gdp=Decimal("1500.00"),
            last_refreshed_at=now,
        ),
        models.Country(
            name="Delta",
            capital="D",
            region="Southern Africa",
            population=400,
            currency_code=None,
            exchange_rate=None,
            estimated_gdp=Decimal("0"),
            last_refreshed_at=now,
        ),
    ]
    for c in data:
        session.add(c)
    session.commit()
