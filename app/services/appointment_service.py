"""Appointment service for business logic."""

import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException, ValidationFailedException
from app.core.observability import Observability
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDraft,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    Consent,
    CreateResult,
    Recurrence,
)
from app.schemas.auth import Actor, Role
from app.schemas.collaborators import NotificationRequest, Person
from app.services.access_control import AccessController, AccessScope, Operation
from app.services.appointment_rules import CREATE_RULES, UPDATE_RULES, FieldRule, Invalid, evaluate
from app.services.conflict_detector import DEFAULT_BUFFER_MINUTES, ConflictDetector
from app.services.facility_service import FacilityValidator
from app.services.identity_service import IdentityValidator
from app.services.notification_service import AppointmentEvent, Notifier, build_notifications
from app.services.recurrence import expand

# Changes to these columns move the appointment on the doctor's calendar
SCHEDULING_FIELDS = ("date", "duration", "doctor_id")


class AppointmentService:
    """Service for managing the appointment lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        identity: IdentityValidator,
        facility: FacilityValidator,
        notifier: Notifier,
        observability: Observability,
        access: AccessController | None = None,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.repository = AppointmentRepository(db)
        self.conflicts = ConflictDetector(self.repository, observability, buffer_minutes)
        self.identity = identity
        self.facility = facility
        self.notifier = notifier
        self.access = access or AccessController()
        self.obs = observability
        self._clock = clock or (lambda: datetime.now(UTC))

    def _check(self, rules: tuple[FieldRule, ...], data: dict[str, Any], now: datetime) -> None:
        result = evaluate(rules, data, now)
        if isinstance(result, Invalid):
            raise ValidationFailedException(result.as_errors())

    async def _load(self, appointment_id: UUID, scope: AccessScope) -> RowMapping:
        row = await self.repository.get(
            appointment_id,
            patient_id=scope.patient_id,
            doctor_id=scope.doctor_id,
        )
        if row is None:
            raise NotFoundException("Appointment not found or access denied", appointment_id)
        return row

    @staticmethod
    def _ensure_mutable(row: RowMapping) -> None:
        if row["status"] == AppointmentStatus.COMPLETED.value:
            raise ValidationFailedException(
                [{"field": "status", "message": "Completed appointments cannot be modified"}]
            )

    async def create_appointment(
        self,
        actor: Actor,
        data: AppointmentCreate,
    ) -> CreateResult:
        """
        Create an appointment, or every instance of a recurring series.

        Args:
            actor: Authenticated caller
            data: Appointment creation data

        Returns:
            All persisted instances

        Raises:
            ValidationFailedException: If the payload breaks a business rule
            AuthorizationDeniedException: If the actor may not book for this patient
            ValidationRejectedException: If a referenced person or facility is invalid
            DependencyUnavailableException: If a collaborator is unreachable
            SchedulingConflictException: If any instance collides with the doctor's schedule
        """
        now = self._clock()
        self._check(CREATE_RULES, data.model_dump(), now)
        self.access.authorize_create(actor, data.patient_id)

        patient = await self.identity.validate_identity(data.patient_id, Role.PATIENT)
        doctor = await self.identity.validate_identity(data.doctor_id, Role.DOCTOR)
        await self.facility.validate_facility(data.facility_id)

        recurrence = None
        if data.recurrence is not None and data.recurrence.type is not None:
            recurrence = Recurrence(
                type=data.recurrence.type,
                interval=data.recurrence.interval,
                end_date=data.recurrence.end_date,
            )

        base = AppointmentDraft(
            appointment_id=uuid4(),
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            facility_id=data.facility_id,
            date=data.date,
            duration=data.duration,
            type=data.type,
            notes=data.notes,
            consent=Consent(
                given=data.consent.given,
                purpose=data.consent.purpose,
                granted_at=now if data.consent.given else None,
            ),
            recurrence=recurrence,
            created_by=actor.id,
            updated_by=actor.id,
        )
        instances = expand(base)

        # One transaction for the whole series: the first conflict aborts all of it
        try:
            await self.repository.lock_doctor_schedule(data.doctor_id)
            rows = []
            for instance in instances:
                await self.conflicts.ensure_available(
                    instance.doctor_id, instance.date, instance.end
                )
                rows.append(await self.repository.insert(instance, now))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        created = [AppointmentResponse.from_row(row) for row in rows]
        for appointment in created:
            self.obs.logger.info(
                "appointment_created",
                appointment_id=str(appointment.appointment_id),
                patient_id=str(appointment.patient_id),
                doctor_id=str(appointment.doctor_id),
                facility_id=str(appointment.facility_id),
                date=appointment.date.isoformat(),
                type=appointment.type.value,
                actor_id=actor.id,
            )
        if recurrence is not None:
            self.obs.metrics.recurring_created.labels(type=recurrence.type.value).inc(len(created))

        async def compose() -> list[NotificationRequest]:
            notifications: list[NotificationRequest] = []
            for appointment in created:
                notifications.extend(
                    build_notifications(AppointmentEvent.CREATED, patient, appointment, doctor)
                )
            return notifications

        await self.notifier.dispatch(compose, str(created[0].appointment_id))

        return CreateResult(appointments=created, recurring=recurrence is not None)

    async def get_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """
        Get appointment by ID within the actor's scope.

        Raises:
            NotFoundException: If appointment not found or outside the actor's scope
        """
        scope = self.access.scope(actor, Operation.READ)
        row = await self._load(appointment_id, scope)
        return AppointmentResponse.from_row(row)

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Patients and doctors only ever see their own appointments, whatever
        owner filters they pass.
        """
        scope = self.access.scope(actor, Operation.READ)
        narrowed = scope.narrow(filters)

        rows, total = await self.repository.list_filtered(narrowed)
        items = [AppointmentResponse.from_row(row) for row in rows]

        self.obs.logger.info(
            "appointments_listed",
            actor_id=actor.id,
            count=len(items),
            total=total,
            page=narrowed.page,
            limit=narrowed.limit,
        )

        return AppointmentListResponse(
            total=total,
            page=narrowed.page,
            limit=narrowed.limit,
            pages=math.ceil(total / narrowed.limit),
            items=items,
        )

    async def update_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Merge a partial update into an existing appointment.

        Conflict detection only re-runs when the date, duration or doctor
        actually changes.

        Raises:
            NotFoundException: If appointment not found or outside the actor's scope
            ValidationFailedException: If a changed field breaks a business rule
            SchedulingConflictException: If the new window collides with the schedule
        """
        now = self._clock()
        scope = self.access.scope(actor, Operation.UPDATE)
        current = await self._load(appointment_id, scope)
        self._ensure_mutable(current)

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "recurrence"
        }
        # Resending the stored start is not a reschedule
        if changes.get("date") == current["date"]:
            del changes["date"]
        self._check(UPDATE_RULES, {**changes, "current_date": current["date"]}, now)

        values: dict[str, Any] = {}
        for field in ("date", "duration", "notes", "doctor_id"):
            if field in changes:
                values[field] = changes[field]
        if data.type is not None:
            values["type"] = data.type.value

        if data.consent is not None:
            values["consent_given"] = data.consent.given
            values["consent_purpose"] = data.consent.purpose.value
            values["consent_granted_at"] = now if data.consent.given else None

        if "recurrence" in changes:
            recurrence = data.recurrence
            if recurrence is None or recurrence.type is None:
                values.update(
                    recurrence_type=None,
                    recurrence_interval=None,
                    recurrence_end_date=None,
                )
            else:
                values.update(
                    recurrence_type=recurrence.type.value,
                    recurrence_interval=recurrence.interval,
                    recurrence_end_date=recurrence.end_date,
                )

        rescheduled = any(
            field in values and values[field] != current[field] for field in SCHEDULING_FIELDS
        )
        doctor_id = values.get("doctor_id", current["doctor_id"])
        if doctor_id != current["doctor_id"]:
            await self.identity.validate_identity(doctor_id, Role.DOCTOR)

        values["updated_by"] = actor.id
        values["updated_at"] = now

        try:
            if rescheduled:
                start = values.get("date", current["date"])
                end = start + timedelta(minutes=values.get("duration", current["duration"]))
                await self.repository.lock_doctor_schedule(doctor_id)
                await self.conflicts.ensure_available(
                    doctor_id, start, end, exclude_appointment_id=appointment_id
                )
            row = await self.repository.update(appointment_id, values)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        updated = AppointmentResponse.from_row(row)
        self.obs.logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(changes),
            rescheduled=rescheduled,
            actor_id=actor.id,
        )

        await self.notifier.dispatch(
            self._patient_notifications(AppointmentEvent.UPDATED, updated),
            str(appointment_id),
        )
        return updated

    async def cancel_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
    ) -> None:
        """
        Cancel (soft delete) an appointment.

        Cancelled appointments drop out of every read scope, so cancelling
        twice reports the appointment as not found.

        Raises:
            NotFoundException: If appointment not found or outside the actor's scope
            ValidationFailedException: If the appointment is already completed
        """
        now = self._clock()
        scope = self.access.scope(actor, Operation.CANCEL)
        current = await self._load(appointment_id, scope)
        self._ensure_mutable(current)

        try:
            row = await self.repository.update(
                appointment_id,
                {
                    "status": AppointmentStatus.CANCELLED.value,
                    "deleted": True,
                    "updated_by": actor.id,
                    "updated_at": now,
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        cancelled = AppointmentResponse.from_row(row)
        self.obs.logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            actor_id=actor.id,
        )

        await self.notifier.dispatch(
            self._patient_notifications(AppointmentEvent.CANCELLED, cancelled),
            str(appointment_id),
        )

    async def complete_elapsed(self, actor: Actor, now: datetime | None = None) -> int:
        """
        Mark scheduled appointments whose window has ended as completed.

        Only the internal system actor may run this transition.

        Returns:
            Number of appointments completed
        """
        self.access.scope(actor, Operation.COMPLETE)
        now = now or self._clock()

        completed = 0
        try:
            for row in await self.repository.list_scheduled_before(now):
                if row["date"] + timedelta(minutes=row["duration"]) > now:
                    continue
                await self.repository.update(
                    row["appointment_id"],
                    {
                        "status": AppointmentStatus.COMPLETED.value,
                        "updated_by": actor.id,
                        "updated_at": now,
                    },
                )
                completed += 1
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self.obs.logger.info("appointments_completed", count=completed, actor_id=actor.id)
        return completed

    def _patient_notifications(self, event: AppointmentEvent, appointment: AppointmentResponse):
        async def compose() -> list[NotificationRequest]:
            patient: Person = await self.identity.validate_identity(
                appointment.patient_id, Role.PATIENT
            )
            return build_notifications(event, patient, appointment)

        return compose
