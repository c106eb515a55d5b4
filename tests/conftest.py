"""
Shared fixtures for the booking leads test suite.

Environment variables are set before the application is imported so the
settings object picks up the test configuration.
"""
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ADMIN_PASSWORD"] = "admin-pass"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "whsec_test"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("CMS_PASSWORD", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import booking_leads.models  # noqa: F401
from booking_leads.core.exceptions import LeadNotFoundError
from booking_leads.db.base import Base
from booking_leads.main import app
from booking_leads.models.lead import Lead
from booking_leads.routes.dependencies import get_attribution_storage, get_lead_repository
from booking_leads.services.attribution import InMemoryAttributionStorage
from booking_leads.services.lead_repository import LeadFilter, LeadOrder


class FakeLeadRepository:
    """In-memory repository supporting the filters the services use."""

    def __init__(self):
        self.leads: Dict[uuid.UUID, Lead] = {}

    def add(self, **values: Any) -> Lead:
        now = datetime.now(timezone.utc)
        values.setdefault("id", uuid.uuid4())
        values.setdefault("booking_type", "standard")
        values.setdefault("currency", "AUD")
        values.setdefault("status", "draft")
        values.setdefault("created_at", now)
        values.setdefault("updated_at", values["created_at"])
        lead = Lead(**values)
        self.leads[lead.id] = lead
        return lead

    def _matches(self, lead: Lead, where: LeadFilter) -> bool:
        if where.status is not None and lead.status != where.status:
            return False
        if where.email is not None and lead.email != where.email:
            return False
        if where.booking_type is not None and lead.booking_type != where.booking_type:
            return False
        if where.created_after is not None and lead.created_at < where.created_after:
            return False
        if where.created_before is not None and lead.created_at > where.created_before:
            return False
        return True

    async def create(self, values: Mapping[str, Any]) -> Lead:
        return self.add(**dict(values))

    async def update(self, lead_id: uuid.UUID, values: Mapping[str, Any]) -> Lead:
        lead = self.leads.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        lead.update(**values)
        return lead

    async def update_many(self, where: LeadFilter, values: Mapping[str, Any]) -> int:
        matched = [lead for lead in self.leads.values() if self._matches(lead, where)]
        for lead in matched:
            lead.update(**values)
        return len(matched)

    async def find_many(
        self,
        where: LeadFilter,
        order_by: LeadOrder = LeadOrder.CREATED_DESC,
        limit: Optional[int] = None,
    ) -> List[Lead]:
        found = [lead for lead in self.leads.values() if self._matches(lead, where)]
        found.sort(key=lambda lead: lead.created_at, reverse=order_by == LeadOrder.CREATED_DESC)
        return found[:limit] if limit is not None else found

    async def get(self, lead_id: uuid.UUID) -> Optional[Lead]:
        return self.leads.get(lead_id)

    async def delete(self, lead_id: uuid.UUID) -> bool:
        return self.leads.pop(lead_id, None) is not None


@pytest.fixture
def repository() -> FakeLeadRepository:
    return FakeLeadRepository()


@pytest.fixture
def attribution_storage() -> InMemoryAttributionStorage:
    return InMemoryAttributionStorage()


@pytest.fixture
def client(repository, attribution_storage):
    app.dependency_overrides[get_lead_repository] = lambda: repository
    app.dependency_overrides[get_attribution_storage] = lambda: attribution_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/admin/login", json={"password": "admin-pass"})
    assert response.status_code == 200
    return client


@pytest.fixture
async def db_session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()
