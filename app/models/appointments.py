"""Appointments table model using SQLAlchemy Core."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    false,
    func,
)

# Metadata for all tables
metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that is always stored and returned in UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# Appointments table
appointments = Table(
    "appointments",
    metadata,
    # Row identity, internal to the store
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Public, immutable appointment identifier
    Column("appointment_id", Uuid, nullable=False, unique=True),
    # References (not owned)
    Column("patient_id", Uuid, nullable=False),
    Column("doctor_id", Uuid, nullable=False),
    Column("facility_id", Uuid, nullable=False),
    # Scheduling
    Column("date", UTCDateTime, nullable=False),
    Column("duration", Integer, nullable=False, server_default="30"),
    Column("type", String(20), nullable=False, server_default="in-person"),
    # Status management
    Column("status", String(20), nullable=False, server_default="scheduled"),
    # Soft delete (healthcare compliance)
    Column("deleted", Boolean, nullable=False, server_default=false()),
    # Consent
    Column("consent_given", Boolean, nullable=False, server_default=false()),
    Column("consent_purpose", String(20), nullable=False, server_default="treatment"),
    Column("consent_granted_at", UTCDateTime, nullable=True),
    # Recurrence descriptor, null when the appointment does not repeat
    Column("recurrence_type", String(10), nullable=True),
    Column("recurrence_interval", Integer, nullable=True),
    Column("recurrence_end_date", UTCDateTime, nullable=True),
    Column("notes", Text, nullable=False, server_default=""),
    # Audit fields
    Column("created_by", String(64), nullable=False, server_default="system"),
    Column("updated_by", String(64), nullable=False, server_default="system"),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint("type IN ('in-person', 'telemedicine')", name="appointments_type_check"),
    CheckConstraint("duration BETWEEN 15 AND 120", name="appointments_duration_check"),
    CheckConstraint(
        "consent_purpose IN ('treatment', 'billing', 'research')",
        name="appointments_consent_purpose_check",
    ),
    CheckConstraint(
        "(status = 'cancelled') = deleted",
        name="appointments_cancelled_deleted_check",
    ),
    Index("ix_appointments_doctor_schedule", "doctor_id", "date", "deleted"),
    Index("ix_appointments_patient_id", "patient_id"),
    Index("ix_appointments_status", "status"),
)
