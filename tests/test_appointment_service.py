"""Tests for the appointment lifecycle service."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthorizationDeniedException, ValidationFailedException
from app.core.observability import Observability
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDraft,
    AppointmentFilters,
    AppointmentType,
    AppointmentUpdate,
    Consent,
    ConsentPurpose,
)
from app.schemas.auth import Actor
from app.schemas.collaborators import Person
from app.services.appointment_service import AppointmentService

NOW = datetime(2030, 5, 10, 12, tzinfo=UTC)


def _draft(start: datetime, duration: int = 30) -> AppointmentDraft:
    return AppointmentDraft(
        appointment_id=uuid4(),
        patient_id=uuid4(),
        doctor_id=uuid4(),
        facility_id=uuid4(),
        date=start,
        duration=duration,
        type=AppointmentType.IN_PERSON,
        notes="",
        consent=Consent(given=False, purpose=ConsentPurpose.TREATMENT),
        created_by="seed",
        updated_by="seed",
    )


@pytest.fixture
def observability() -> Observability:
    return Observability(logger=structlog.get_logger("tests"))


@pytest.fixture
def identity() -> AsyncMock:
    validator = AsyncMock()
    validator.validate_identity.side_effect = lambda person_id, role: Person(
        id=str(person_id), role=role.value, kyc_verified=True, email="someone@example.com"
    )
    return validator


@pytest.fixture
def service(db_session: AsyncSession, identity: AsyncMock, observability: Observability) -> AppointmentService:
    return AppointmentService(
        db=db_session,
        identity=identity,
        facility=AsyncMock(),
        notifier=AsyncMock(),
        observability=observability,
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_recurring_create_records_metric(
    service: AppointmentService,
    observability: Observability,
) -> None:
    admin = Actor(id=str(uuid4()), role="admin")
    start = NOW + timedelta(days=1)
    payload = AppointmentCreate(
        patient_id=uuid4(),
        doctor_id=uuid4(),
        facility_id=uuid4(),
        date=start,
        recurrence={"type": "weekly", "interval": 2, "end_date": start + timedelta(weeks=4)},
    )

    result = await service.create_appointment(admin, payload)

    assert result.recurring_count == 3
    assert observability.metrics.recurring_created.labels(type="weekly")._value.get() == 3
    service.notifier.dispatch.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_reports_pages(service: AppointmentService, db_session: AsyncSession) -> None:
    repository = AppointmentRepository(db_session)
    for day in range(3):
        await repository.insert(_draft(NOW + timedelta(days=day + 1)), NOW)
    await db_session.commit()

    listing = await service.list_appointments(
        Actor(id=str(uuid4()), role="admin"),
        AppointmentFilters(limit=2),
    )

    assert listing.total == 3
    assert listing.pages == 2
    assert len(listing.items) == 2


@pytest.mark.asyncio
async def test_complete_elapsed(service: AppointmentService, db_session: AsyncSession) -> None:
    repository = AppointmentRepository(db_session)
    finished = await repository.insert(_draft(NOW - timedelta(hours=2)), NOW)
    running = await repository.insert(_draft(NOW - timedelta(minutes=10), duration=60), NOW)
    upcoming = await repository.insert(_draft(NOW + timedelta(hours=2)), NOW)
    await db_session.commit()

    completed = await service.complete_elapsed(Actor.system(), NOW)

    assert completed == 1
    statuses = {}
    for row in (finished, running, upcoming):
        current = await repository.get(row["appointment_id"])
        statuses[row["appointment_id"]] = current["status"]
    assert statuses == {
        finished["appointment_id"]: "completed",
        running["appointment_id"]: "scheduled",
        upcoming["appointment_id"]: "scheduled",
    }


@pytest.mark.asyncio
async def test_only_system_may_complete(service: AppointmentService) -> None:
    with pytest.raises(AuthorizationDeniedException):
        await service.complete_elapsed(Actor(id=str(uuid4()), role="admin"), NOW)


@pytest.mark.asyncio
async def test_completed_appointments_are_immutable(
    service: AppointmentService,
    db_session: AsyncSession,
) -> None:
    repository = AppointmentRepository(db_session)
    row = await repository.insert(_draft(NOW - timedelta(hours=2)), NOW)
    await db_session.commit()
    await service.complete_elapsed(Actor.system(), NOW)
    admin = Actor(id=str(uuid4()), role="admin")

    with pytest.raises(ValidationFailedException):
        await service.update_appointment(admin, row["appointment_id"], AppointmentUpdate(notes="late"))
    with pytest.raises(ValidationFailedException):
        await service.cancel_appointment(admin, row["appointment_id"])


@pytest.mark.asyncio
async def test_changing_doctor_revalidates_identity(
    service: AppointmentService,
    db_session: AsyncSession,
    identity: AsyncMock,
) -> None:
    repository = AppointmentRepository(db_session)
    row = await repository.insert(_draft(NOW + timedelta(days=1)), NOW)
    await db_session.commit()
    new_doctor = uuid4()

    updated = await service.update_appointment(
        Actor(id=str(uuid4()), role="admin"),
        row["appointment_id"],
        AppointmentUpdate(doctor_id=new_doctor),
    )

    assert updated.doctor_id == new_doctor
    assert identity.validate_identity.await_args_list[0].args[0] == new_doctor


@pytest.mark.asyncio
async def test_resending_stored_date_skips_future_check(
    service: AppointmentService,
    db_session: AsyncSession,
) -> None:
    repository = AppointmentRepository(db_session)
    started = NOW - timedelta(minutes=10)
    row = await repository.insert(_draft(started, duration=60), NOW)
    await db_session.commit()
    admin = Actor(id=str(uuid4()), role="admin")

    updated = await service.update_appointment(
        admin,
        row["appointment_id"],
        AppointmentUpdate(date=started, notes="running late"),
    )
    assert updated.notes == "running late"
    assert updated.date == started

    with pytest.raises(ValidationFailedException):
        await service.update_appointment(
            admin,
            row["appointment_id"],
            AppointmentUpdate(date=started - timedelta(minutes=5)),
        )
