import uuid
from datetime import datetime, timedelta, timezone

import pytest

from booking_leads.core.exceptions import LeadNotFoundError
from booking_leads.schemas.lead import BookingLeadPayload
from booking_leads.services.booking_lead import get_abandoned_leads, mark_lead_converted_by_email, upsert_booking_lead
from booking_leads.services.lead_repository import LeadFilter, LeadOrder, SqlAlchemyLeadRepository

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


async def seed(repository, **values):
    created_at = values.pop("created_at", NOW)
    values.setdefault("currency", "AUD")
    return await repository.create({"created_at": created_at, "updated_at": created_at, **values})


@pytest.mark.asyncio
async def test_create_assigns_id_and_defaults(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    lead = await repository.create({"email": "a@x.com", "currency": "AUD"})

    assert isinstance(lead.id, uuid.UUID)
    assert lead.status == "draft"
    assert lead.booking_type == "standard"
    assert lead.created_at is not None
    assert await repository.get(lead.id) is lead


@pytest.mark.asyncio
async def test_update_writes_values(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    lead = await seed(repository, email="a@x.com", full_name="Alice")

    updated = await repository.update(lead.id, {"full_name": "Alice Smith", "passengers": 3})

    assert updated.full_name == "Alice Smith"
    assert updated.passengers == 3
    assert updated.email == "a@x.com"


@pytest.mark.asyncio
async def test_update_missing_lead_raises(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    with pytest.raises(LeadNotFoundError) as exc_info:
        await repository.update(uuid.uuid4(), {"full_name": "Nobody"})
    assert exc_info.value.code == "lead_not_found"


@pytest.mark.asyncio
async def test_update_many_only_touches_matching_rows(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    first = await seed(repository, email="a@x.com")
    second = await seed(repository, email="a@x.com")
    other = await seed(repository, email="b@x.com")

    count = await repository.update_many(LeadFilter(email="a@x.com", status="draft"), {"status": "converted"})

    assert count == 2
    converted = await repository.find_many(LeadFilter(status="converted"))
    assert {lead.id for lead in converted} == {first.id, second.id}
    assert all(lead.status == "converted" for lead in converted)
    assert (await repository.get(other.id)).status == "draft"


@pytest.mark.asyncio
async def test_update_many_requires_a_condition(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    with pytest.raises(ValueError):
        await repository.update_many(LeadFilter(), {"status": "converted"})


@pytest.mark.asyncio
async def test_mark_converted_against_database(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    await seed(repository, email="pay@x.com")

    assert await mark_lead_converted_by_email(repository, "pay@x.com") == 1
    assert await mark_lead_converted_by_email(repository, "pay@x.com") == 0


@pytest.mark.asyncio
async def test_find_many_orders_and_limits(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    oldest = await seed(repository, email="1@x.com", created_at=NOW - timedelta(hours=3))
    middle = await seed(repository, email="2@x.com", created_at=NOW - timedelta(hours=2))
    newest = await seed(repository, email="3@x.com", created_at=NOW - timedelta(hours=1))

    desc = await repository.find_many(LeadFilter())
    assert [lead.id for lead in desc] == [newest.id, middle.id, oldest.id]

    asc = await repository.find_many(LeadFilter(), order_by=LeadOrder.CREATED_ASC, limit=2)
    assert [lead.id for lead in asc] == [oldest.id, middle.id]


@pytest.mark.asyncio
async def test_find_many_created_range(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    await seed(repository, email="old@x.com", created_at=NOW - timedelta(days=3))
    recent = await seed(repository, email="new@x.com", created_at=NOW - timedelta(hours=1))

    found = await repository.find_many(LeadFilter(created_after=NOW - timedelta(days=1)))
    assert [lead.id for lead in found] == [recent.id]


@pytest.mark.asyncio
async def test_find_many_search_is_case_insensitive(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    alice = await seed(repository, email="alice@example.com", full_name="Alice Smith")
    await seed(repository, email="bob@example.com", full_name="Bob Jones")
    campaign = await seed(repository, contact_number="0400111222", utm_campaign="Winter-Sale")

    assert [lead.id for lead in await repository.find_many(LeadFilter(search="SMITH"))] == [alice.id]
    assert [lead.id for lead in await repository.find_many(LeadFilter(search="winter"))] == [campaign.id]
    assert [lead.id for lead in await repository.find_many(LeadFilter(search="0400111"))] == [campaign.id]
    assert len(await repository.find_many(LeadFilter(search="   "))) == 3


@pytest.mark.asyncio
async def test_find_many_utm_filters(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    google = await seed(repository, email="g@x.com", utm_source="google", utm_medium="cpc")
    partner = await seed(repository, email="p@x.com", utm_source="partner", utm_medium="affiliate")
    direct = await seed(repository, email="d@x.com")

    def ids(leads):
        return {lead.id for lead in leads}

    assert ids(await repository.find_many(LeadFilter(utm="all"))) == {google.id, partner.id, direct.id}
    assert ids(await repository.find_many(LeadFilter(utm="affiliate"))) == {partner.id}
    assert ids(await repository.find_many(LeadFilter(utm="direct"))) == {direct.id}
    assert ids(await repository.find_many(LeadFilter(utm="google"))) == {google.id}


@pytest.mark.asyncio
async def test_abandoned_leads_against_database(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    stale = await seed(repository, email="stale@x.com", created_at=NOW - timedelta(hours=30))
    await seed(repository, email="fresh@x.com", created_at=NOW - timedelta(hours=1))
    await seed(repository, email="paid@x.com", status="converted", created_at=NOW - timedelta(hours=40))

    leads = await get_abandoned_leads(repository, 24, now=NOW)
    assert [lead.id for lead in leads] == [stale.id]


@pytest.mark.asyncio
async def test_delete(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    lead = await seed(repository, email="a@x.com")

    assert await repository.delete(lead.id) is True
    assert await repository.get(lead.id) is None
    assert await repository.delete(lead.id) is False


@pytest.mark.asyncio
async def test_update_through_database_keeps_attribution(db_session):
    repository = SqlAlchemyLeadRepository(db_session)
    captured = NOW - timedelta(days=2)
    created = await upsert_booking_lead(
        repository,
        BookingLeadPayload.model_validate({
            "email": "a@x.com",
            "utm": {"utm_source": "google", "utm_campaign": "spring", "capturedAt": captured.isoformat()},
        }),
        now=NOW,
    )

    await upsert_booking_lead(
        repository,
        BookingLeadPayload.model_validate({
            "id": str(created.id),
            "email": "a@x.com",
            "passengers": 4,
            "utm": {"utm_source": "facebook", "utm_medium": "social", "capturedAt": NOW.isoformat()},
        }),
        now=NOW + timedelta(minutes=1),
    )

    stored = await repository.get(created.id)
    assert stored.passengers == 4
    assert stored.utm_source == "google"
    assert stored.utm_medium is None
    assert stored.utm_campaign == "spring"
    assert stored.utm_captured_at.replace(tzinfo=timezone.utc) == captured
