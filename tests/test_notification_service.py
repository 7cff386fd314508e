"""Tests for best-effort appointment notifications."""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx
import pytest
import structlog

from app.core.observability import Observability
from app.core.security import ServiceTokenProvider
from app.schemas.appointments import AppointmentResponse
from app.schemas.collaborators import Person
from app.services.notification_service import AppointmentEvent, Notifier, build_notifications


def _appointment() -> AppointmentResponse:
    now = datetime(2030, 1, 1, tzinfo=UTC)
    return AppointmentResponse(
        appointment_id=uuid4(),
        patient_id=uuid4(),
        doctor_id=uuid4(),
        facility_id=uuid4(),
        date=now + timedelta(days=3),
        duration=30,
        type="telemedicine",
        status="scheduled",
        deleted=False,
        consent={"given": True, "purpose": "treatment", "granted_at": now},
        notes="",
        created_by="tester",
        updated_by="tester",
        created_at=now,
        updated_at=now,
    )


def _notifier(handler, **kwargs) -> tuple[Notifier, httpx.AsyncClient, Observability]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    observability = Observability(logger=structlog.get_logger("tests"))
    provider = ServiceTokenProvider(
        secret_key="secret",
        service_key="service-key",
        issuer="appointment-service",
        expires_in=timedelta(minutes=60),
    )
    notifier = Notifier("http://notify.test/api", client, provider, observability, **kwargs)
    return notifier, client, observability


def test_email_and_sms_for_patient_with_phone() -> None:
    patient = Person(id="p1", role="patient", email="p@example.com", phone_number="+1555")
    doctor = Person(id="d1", role="doctor", name="Grey")
    appointment = _appointment()

    notifications = build_notifications(AppointmentEvent.CREATED, patient, appointment, doctor)

    assert [n.type.value for n in notifications] == ["email", "sms"]
    assert "Dr. Grey" in notifications[0].message
    assert notifications[1].phone_number == "+1555"
    assert {n.external_id for n in notifications} == {str(appointment.appointment_id)}


def test_email_only_without_phone() -> None:
    patient = Person(id="p1", role="patient", email="p@example.com")

    notifications = build_notifications(AppointmentEvent.CANCELLED, patient, _appointment())

    assert len(notifications) == 1
    assert notifications[0].subject == "Appointment Cancelled"


@pytest.mark.asyncio
async def test_dispatch_posts_notifications() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(201)

    notifier, client, _ = _notifier(handler)
    patient = Person(id="p1", role="patient", email="p@example.com", phone_number="+1555")
    appointment = _appointment()

    async def compose():
        return build_notifications(AppointmentEvent.UPDATED, patient, appointment)

    await notifier.dispatch(compose, str(appointment.appointment_id))
    await notifier.drain()
    await client.aclose()

    assert [body["type"] for body in received] == ["email", "sms"]
    assert received[1]["phoneNumber"] == "+1555"
    assert received[0]["externalId"] == str(appointment.appointment_id)
    assert "phoneNumber" not in received[0]


@pytest.mark.asyncio
async def test_delivery_failures_are_swallowed_and_counted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    notifier, client, observability = _notifier(handler)
    patient = Person(id="p1", role="patient", email="p@example.com")
    appointment = _appointment()

    async def compose():
        return build_notifications(AppointmentEvent.CREATED, patient, appointment)

    await notifier.dispatch(compose, str(appointment.appointment_id))
    await notifier.drain()
    await client.aclose()

    assert observability.metrics.notifications_failed.labels(type="email")._value.get() == 1


@pytest.mark.asyncio
async def test_compose_failure_is_swallowed() -> None:
    notifier, client, _ = _notifier(lambda request: httpx.Response(201))

    async def compose():
        raise RuntimeError("identity lookup failed")

    await notifier.dispatch(compose, "appointment")
    await notifier.drain()
    await client.aclose()


@pytest.mark.asyncio
async def test_dispatch_does_not_wait_past_grace_period() -> None:
    release = asyncio.Event()

    notifier, client, _ = _notifier(lambda request: httpx.Response(201), grace_seconds=0.01)

    async def compose():
        await release.wait()
        return []

    await notifier.dispatch(compose, "appointment")
    assert len(notifier._pending) == 1

    release.set()
    await notifier.drain()
    await client.aclose()
    assert not notifier._pending
