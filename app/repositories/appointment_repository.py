"""Data access for the appointments table.

Reads and writes only; scheduling rules live in the services layer.
Callers own the transaction and decide when to commit.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, insert, select, text, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments
from app.schemas.appointments import AppointmentDraft, AppointmentFilters, AppointmentStatus


class AppointmentRepository:
    """Repository for appointment rows."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def lock_doctor_schedule(self, doctor_id: UUID) -> None:
        """
        Serialise writers touching the same doctor's calendar.

        On PostgreSQL this takes a transaction-scoped advisory lock, released
        on commit or rollback. Other backends serialise writes themselves.
        """
        if self.db.get_bind().dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"doctor-schedule:{doctor_id}"},
            )

    async def find_active_for_doctor(
        self,
        doctor_id: UUID,
        starts_from: datetime,
        starts_before: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> Sequence[RowMapping]:
        """Active appointments of a doctor starting in ``[starts_from, starts_before)``."""
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.deleted.is_(False),
            appointments.c.status != AppointmentStatus.CANCELLED.value,
            appointments.c.date >= starts_from,
            appointments.c.date < starts_before,
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.appointment_id != exclude_appointment_id)

        stmt = (
            select(
                appointments.c.appointment_id,
                appointments.c.date,
                appointments.c.duration,
            )
            .where(and_(*conditions))
            .order_by(appointments.c.date)
        )
        result = await self.db.execute(stmt)
        return result.mappings().all()

    async def insert(self, draft: AppointmentDraft, now: datetime) -> RowMapping:
        """Insert a new scheduled appointment."""
        values: dict[str, Any] = {
            "appointment_id": draft.appointment_id,
            "patient_id": draft.patient_id,
            "doctor_id": draft.doctor_id,
            "facility_id": draft.facility_id,
            "date": draft.date,
            "duration": draft.duration,
            "type": draft.type.value,
            "status": AppointmentStatus.SCHEDULED.value,
            "deleted": False,
            "consent_given": draft.consent.given,
            "consent_purpose": draft.consent.purpose.value,
            "consent_granted_at": draft.consent.granted_at,
            "recurrence_type": draft.recurrence.type.value if draft.recurrence else None,
            "recurrence_interval": draft.recurrence.interval if draft.recurrence else None,
            "recurrence_end_date": draft.recurrence.end_date if draft.recurrence else None,
            "notes": draft.notes,
            "created_by": draft.created_by,
            "updated_by": draft.updated_by,
            "created_at": now,
            "updated_at": now,
        }

        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        return result.mappings().one()

    async def get(
        self,
        appointment_id: UUID,
        patient_id: UUID | None = None,
        doctor_id: UUID | None = None,
    ) -> RowMapping | None:
        """Fetch a non-deleted appointment, optionally restricted to an owner."""
        conditions = [
            appointments.c.appointment_id == appointment_id,
            appointments.c.deleted.is_(False),
        ]
        if patient_id is not None:
            conditions.append(appointments.c.patient_id == patient_id)
        if doctor_id is not None:
            conditions.append(appointments.c.doctor_id == doctor_id)

        result = await self.db.execute(select(appointments).where(and_(*conditions)))
        return result.mappings().first()

    async def list_filtered(self, filters: AppointmentFilters) -> tuple[Sequence[RowMapping], int]:
        """List non-deleted appointments matching ``filters`` with pagination."""
        conditions = [appointments.c.deleted.is_(False)]

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.facility_id:
            conditions.append(appointments.c.facility_id == filters.facility_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.type:
            conditions.append(appointments.c.type == filters.type.value)

        if filters.start_date:
            conditions.append(appointments.c.date >= filters.start_date)

        if filters.end_date:
            conditions.append(appointments.c.date <= filters.end_date)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.limit

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.date.asc(), appointments.c.id.asc())
            .limit(filters.limit)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        return result.mappings().all(), total

    async def update(self, appointment_id: UUID, values: dict[str, Any]) -> RowMapping:
        """Apply column values to a single appointment and return the new row."""
        stmt = (
            update(appointments)
            .where(appointments.c.appointment_id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        return result.mappings().one()

    async def list_scheduled_before(self, before: datetime) -> Sequence[RowMapping]:
        """Scheduled, non-deleted appointments starting before ``before``."""
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.status == AppointmentStatus.SCHEDULED.value,
                    appointments.c.deleted.is_(False),
                    appointments.c.date < before,
                )
            )
            .order_by(appointments.c.date)
        )
        result = await self.db.execute(stmt)
        return result.mappings().all()
