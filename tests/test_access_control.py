"""Tests for role-based access decisions."""

from uuid import uuid4

import pytest

from app.core.exceptions import AuthorizationDeniedException
from app.schemas.appointments import AppointmentFilters
from app.schemas.auth import Actor
from app.services.access_control import AccessController, Operation


@pytest.fixture
def access() -> AccessController:
    return AccessController()


def test_patient_scope_is_own_records(access: AccessController) -> None:
    actor_id = uuid4()
    scope = access.scope(Actor(id=str(actor_id), role="patient"), Operation.READ)
    assert scope.patient_id == actor_id
    assert scope.doctor_id is None


def test_doctor_reads_own_schedule(access: AccessController) -> None:
    actor_id = uuid4()
    scope = access.scope(Actor(id=str(actor_id), role="doctor"), Operation.READ)
    assert scope.doctor_id == actor_id


@pytest.mark.parametrize("operation", [Operation.CREATE, Operation.UPDATE, Operation.CANCEL])
def test_doctor_cannot_write(access: AccessController, operation: Operation) -> None:
    with pytest.raises(AuthorizationDeniedException):
        access.scope(Actor(id=str(uuid4()), role="doctor"), operation)


def test_admin_is_unrestricted(access: AccessController) -> None:
    scope = access.scope(Actor(id=str(uuid4()), role="admin"), Operation.CANCEL)
    assert scope.unrestricted


def test_only_system_completes(access: AccessController) -> None:
    assert access.scope(Actor.system(), Operation.COMPLETE).unrestricted
    with pytest.raises(AuthorizationDeniedException):
        access.scope(Actor(id=str(uuid4()), role="admin"), Operation.COMPLETE)


def test_system_cannot_create(access: AccessController) -> None:
    with pytest.raises(AuthorizationDeniedException):
        access.scope(Actor.system(), Operation.CREATE)


def test_unknown_role_is_denied(access: AccessController) -> None:
    with pytest.raises(AuthorizationDeniedException):
        access.scope(Actor(id=str(uuid4()), role="nurse"), Operation.READ)


def test_patient_creates_only_for_self(access: AccessController) -> None:
    actor_id = uuid4()
    actor = Actor(id=str(actor_id), role="patient")
    access.authorize_create(actor, actor_id)
    with pytest.raises(AuthorizationDeniedException, match="themselves"):
        access.authorize_create(actor, uuid4())


def test_narrow_overrides_owner_filters(access: AccessController) -> None:
    actor_id = uuid4()
    scope = access.scope(Actor(id=str(actor_id), role="patient"), Operation.READ)
    filters = AppointmentFilters(patient_id=uuid4(), page=2)

    narrowed = scope.narrow(filters)

    assert narrowed.patient_id == actor_id
    assert narrowed.page == 2
