import uuid
from datetime import datetime, timedelta, timezone

import pytest

from booking_leads.core.exceptions import LeadNotFoundError
from booking_leads.schemas.lead import BookingLeadPayload, LeadPatch, LeadRecord
from booking_leads.services.booking_lead import (
    get_abandoned_leads,
    mark_lead_converted_by_email,
    upsert_booking_lead,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def payload(**data) -> BookingLeadPayload:
    return BookingLeadPayload.model_validate(data)


# Contact gate

@pytest.mark.asyncio
async def test_upsert_skips_without_contact(repository):
    lead = await upsert_booking_lead(repository, payload(fullName="No Contact", pickupLocation="SYD"))
    assert lead is None
    assert repository.leads == {}


@pytest.mark.asyncio
async def test_upsert_skips_with_empty_contact_strings(repository):
    lead = await upsert_booking_lead(repository, payload(email="", contactNumber=""))
    assert lead is None
    assert repository.leads == {}


@pytest.mark.asyncio
async def test_upsert_skips_update_without_contact(repository):
    existing = repository.add(email="a@example.com", full_name="Before")
    lead = await upsert_booking_lead(repository, payload(id=str(existing.id), fullName="After"))
    assert lead is None
    assert existing.full_name == "Before"


# Create

@pytest.mark.asyncio
async def test_create_with_price_and_utm(repository):
    lead = await upsert_booking_lead(
        repository,
        payload(
            email="a@x.com",
            quotedPrice=123.45,
            utm={"utm_source": "google", "utm_medium": "cpc"},
        ),
        now=NOW,
    )

    assert lead.status == "draft"
    assert lead.quoted_price_cents == 12345
    assert lead.quoted_price == 123.45
    assert lead.utm_source == "google"
    assert lead.utm_medium == "cpc"
    assert lead.utm_campaign is None
    assert lead.utm_captured_at == NOW
    assert lead.booking_type == "standard"
    assert lead.currency == "AUD"
    assert lead.created_at == NOW


@pytest.mark.asyncio
async def test_create_keeps_captured_at_from_utm_block(repository):
    captured = NOW - timedelta(days=3)
    lead = await upsert_booking_lead(
        repository,
        payload(contactNumber="0400000000", utm={"utm_source": "fb", "capturedAt": captured.isoformat()}),
        now=NOW,
    )
    assert lead.utm_captured_at == captured
    assert lead.email is None
    assert lead.contact_number == "0400000000"


@pytest.mark.asyncio
async def test_create_without_utm_has_no_attribution(repository):
    lead = await upsert_booking_lead(repository, payload(email="direct@example.com"), now=NOW)
    assert lead.utm_source is None
    assert lead.utm_captured_at is None
    assert lead.quoted_price_cents is None


@pytest.mark.asyncio
async def test_create_hourly_lead(repository):
    lead = await upsert_booking_lead(
        repository,
        payload(
            email="h@example.com",
            bookingType="hourly",
            hourlyPickupLocation="Airport",
            hourlyHours=3.5,
            hourlyVehicleType="sedan",
            currency="USD",
        ),
        now=NOW,
    )
    assert lead.booking_type == "hourly"
    assert lead.hourly_hours == 3.5
    assert lead.currency == "USD"


# Update

@pytest.mark.asyncio
async def test_update_is_partial(repository):
    existing = repository.add(
        email="a@x.com",
        full_name="Alice",
        pickup_location="SYD",
        quoted_price_cents=5000,
        utm_source="google",
    )

    lead = await upsert_booking_lead(
        repository,
        payload(id=str(existing.id), email="a@x.com", dropoffLocation="MEL"),
        now=NOW,
    )

    assert lead.id == existing.id
    assert lead.dropoff_location == "MEL"
    assert lead.full_name == "Alice"
    assert lead.pickup_location == "SYD"
    assert lead.quoted_price_cents == 5000
    assert lead.utm_source == "google"


@pytest.mark.asyncio
async def test_update_never_touches_attribution(repository):
    existing = repository.add(email="a@x.com", utm_source="google", utm_medium="cpc")

    lead = await upsert_booking_lead(
        repository,
        payload(id=str(existing.id), email="a@x.com", utm={"utm_source": "bing", "utm_medium": "email"}),
    )

    assert lead.utm_source == "google"
    assert lead.utm_medium == "cpc"


@pytest.mark.asyncio
async def test_update_explicit_null_email_leaves_value(repository):
    existing = repository.add(email="a@x.com", contact_number="0400")

    lead = await upsert_booking_lead(
        repository,
        payload(id=str(existing.id), email=None, contactNumber="0411"),
    )

    assert lead.email == "a@x.com"
    assert lead.contact_number == "0411"


@pytest.mark.asyncio
async def test_update_sets_price_only_when_quoted(repository):
    existing = repository.add(email="a@x.com", quoted_price_cents=1000)

    lead = await upsert_booking_lead(repository, payload(id=str(existing.id), email="a@x.com", quotedPrice=20.5))
    assert lead.quoted_price_cents == 2050

    lead = await upsert_booking_lead(repository, payload(id=str(existing.id), email="a@x.com", quotedPrice=None))
    assert lead.quoted_price_cents == 2050


@pytest.mark.asyncio
async def test_update_unknown_id_raises(repository):
    with pytest.raises(LeadNotFoundError):
        await upsert_booking_lead(repository, payload(id=str(uuid.uuid4()), email="a@x.com"))


def test_lead_patch_rejects_status_and_utm():
    with pytest.raises(ValueError):
        LeadPatch(status="converted")
    with pytest.raises(ValueError):
        LeadPatch(utm_source="google")


def test_lead_patch_only_contains_set_fields():
    patch = LeadPatch.from_payload(payload(email="a@x.com", passengers=2, currency=None))
    assert patch.values() == {"email": "a@x.com", "passengers": 2}


def test_lead_record_fills_every_field():
    record = LeadRecord.from_payload(payload(email="a@x.com"), now=NOW, default_currency="AUD")
    values = record.values()
    assert values["status"] == "draft"
    assert values["pickup_location"] is None
    assert values["utm_source"] is None
    assert values["currency"] == "AUD"
    assert values["created_at"] == values["updated_at"] == NOW


# Conversion

@pytest.mark.asyncio
async def test_mark_converted_converts_every_draft_for_email(repository):
    first = repository.add(email="a@x.com")
    second = repository.add(email="a@x.com")
    other = repository.add(email="b@x.com")

    converted = await mark_lead_converted_by_email(repository, "a@x.com", now=NOW)

    assert converted == 2
    assert first.status == "converted"
    assert second.status == "converted"
    assert first.updated_at == NOW
    assert other.status == "draft"


@pytest.mark.asyncio
async def test_mark_converted_is_idempotent(repository):
    repository.add(email="a@x.com")

    assert await mark_lead_converted_by_email(repository, "a@x.com") == 1
    assert await mark_lead_converted_by_email(repository, "a@x.com") == 0


@pytest.mark.asyncio
async def test_mark_converted_empty_email_is_noop(repository):
    lead = repository.add(email="a@x.com")

    assert await mark_lead_converted_by_email(repository, "") == 0
    assert await mark_lead_converted_by_email(repository, None) == 0
    assert lead.status == "draft"


@pytest.mark.asyncio
async def test_mark_converted_matches_email_exactly(repository):
    lead = repository.add(email="a@x.com")
    assert await mark_lead_converted_by_email(repository, "A@X.COM") == 0
    assert lead.status == "draft"


# Abandoned drafts

@pytest.mark.asyncio
async def test_abandoned_leads_older_than_cutoff(repository):
    old = repository.add(email="old@x.com", created_at=NOW - timedelta(hours=30))
    older = repository.add(email="older@x.com", created_at=NOW - timedelta(hours=48))
    repository.add(email="fresh@x.com", created_at=NOW - timedelta(hours=2))
    repository.add(email="paid@x.com", status="converted", created_at=NOW - timedelta(hours=72))

    leads = await get_abandoned_leads(repository, 24, now=NOW)

    assert [lead.id for lead in leads] == [old.id, older.id]


@pytest.mark.asyncio
async def test_abandoned_leads_custom_window(repository):
    repository.add(email="a@x.com", created_at=NOW - timedelta(hours=2))

    assert await get_abandoned_leads(repository, 24, now=NOW) == []
    assert len(await get_abandoned_leads(repository, 1, now=NOW)) == 1


@pytest.mark.asyncio
async def test_lead_lifecycle(repository):
    created = await upsert_booking_lead(
        repository,
        payload(email="a@x.com", bookingType="standard", quotedPrice=160, utm={"utm_source": "google"}),
        now=NOW,
    )
    assert created.utm_source == "google"
    assert created.quoted_price_cents == 16000
    assert created.status == "draft"

    updated = await upsert_booking_lead(
        repository,
        payload(id=str(created.id), email="a@x.com", passengers=3, utm={"utm_source": "facebook"}),
        now=NOW + timedelta(minutes=5),
    )
    assert updated.passengers == 3
    assert updated.utm_source == "google"

    later = NOW + timedelta(hours=25)
    assert [lead.id for lead in await get_abandoned_leads(repository, 24, now=later)] == [created.id]

    assert await mark_lead_converted_by_email(repository, "a@x.com") == 1
    assert created.status == "converted"
    assert await mark_lead_converted_by_email(repository, "a@x.com") == 0

    assert await get_abandoned_leads(repository, 24, now=later) == []
