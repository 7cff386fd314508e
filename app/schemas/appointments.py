"""Appointment schemas for request/response validation."""

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator


def ensure_utc(value: datetime | None) -> datetime | None:
    """Interpret naive timestamps as UTC and normalise aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AppointmentType(str, Enum):
    """Appointment kind enumeration."""

    IN_PERSON = "in-person"
    TELEMEDICINE = "telemedicine"


class ConsentPurpose(str, Enum):
    """Purpose the patient consented to."""

    TREATMENT = "treatment"
    BILLING = "billing"
    RESEARCH = "research"


class RecurrenceType(str, Enum):
    """Recurrence stepping unit."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ConsentInput(BaseModel):
    """Consent as supplied by the caller; the grant time is set server-side."""

    given: bool = False
    purpose: ConsentPurpose = ConsentPurpose.TREATMENT


class RecurrenceInput(BaseModel):
    """Recurrence as supplied by the caller. A null type means no recurrence."""

    type: RecurrenceType | None = None
    interval: int | None = None
    end_date: datetime | None = None

    @field_validator("end_date")
    @classmethod
    def normalise_end_date(cls, v: datetime | None) -> datetime | None:
        """Store the series end in UTC."""
        return ensure_utc(v)


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment (or a recurring series)."""

    patient_id: UUID
    doctor_id: UUID
    facility_id: UUID
    date: datetime
    duration: int = 30
    type: AppointmentType = AppointmentType.IN_PERSON
    notes: str = ""
    consent: ConsentInput = Field(default_factory=ConsentInput)
    recurrence: RecurrenceInput | None = None

    @field_validator("date")
    @classmethod
    def normalise_date(cls, v: datetime) -> datetime:
        """Store every start time in UTC."""
        return ensure_utc(v)  # type: ignore[return-value]

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str) -> str:
        """Trim surrounding whitespace from notes."""
        return v.strip()


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment. Unset fields are left alone."""

    doctor_id: UUID | None = None
    date: datetime | None = None
    duration: int | None = None
    type: AppointmentType | None = None
    notes: str | None = None
    consent: ConsentInput | None = None
    recurrence: RecurrenceInput | None = None

    @field_validator("date")
    @classmethod
    def normalise_date(cls, v: datetime | None) -> datetime | None:
        """Store every start time in UTC."""
        return ensure_utc(v)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        """Trim surrounding whitespace from notes."""
        return v.strip() if v is not None else None


class Consent(BaseModel):
    """Stored consent record."""

    given: bool
    purpose: ConsentPurpose
    granted_at: datetime | None = None


class Recurrence(BaseModel):
    """Stored recurrence descriptor."""

    type: RecurrenceType
    interval: int
    end_date: datetime


class AppointmentDraft(BaseModel):
    """A fully-resolved appointment instance that has not been persisted yet."""

    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    facility_id: UUID
    date: datetime
    duration: int
    type: AppointmentType
    notes: str
    consent: Consent
    recurrence: Recurrence | None = None
    created_by: str
    updated_by: str

    @property
    def end(self) -> datetime:
        """Derived end of the appointment window."""
        return self.date + timedelta(minutes=self.duration)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    facility_id: UUID
    date: datetime
    duration: int
    type: AppointmentType
    status: AppointmentStatus
    deleted: bool
    consent: Consent
    recurrence: Recurrence | None = None
    notes: str
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end(self) -> datetime:
        """Derived end of the appointment window."""
        return self.date + timedelta(minutes=self.duration)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AppointmentResponse":
        """Build a response from a flat ``appointments`` row mapping."""
        recurrence = None
        if row["recurrence_type"] is not None:
            recurrence = Recurrence(
                type=row["recurrence_type"],
                interval=row["recurrence_interval"],
                end_date=row["recurrence_end_date"],
            )

        return cls(
            appointment_id=row["appointment_id"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            facility_id=row["facility_id"],
            date=row["date"],
            duration=row["duration"],
            type=row["type"],
            status=row["status"],
            deleted=row["deleted"],
            consent=Consent(
                given=row["consent_given"],
                purpose=row["consent_purpose"],
                granted_at=row["consent_granted_at"],
            ),
            recurrence=recurrence,
            notes=row["notes"],
            created_by=row["created_by"],
            updated_by=row["updated_by"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    limit: int
    pages: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    facility_id: UUID | None = None
    status: AppointmentStatus | None = None
    type: AppointmentType | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_range(cls, v: datetime | None) -> datetime | None:
        """Compare date bounds in UTC."""
        return ensure_utc(v)


class CreateResult(BaseModel):
    """Outcome of a create call: every persisted instance."""

    appointments: list[AppointmentResponse]
    recurring: bool = False

    @property
    def recurring_count(self) -> int | None:
        """Instance count for recurring creates, None otherwise."""
        return len(self.appointments) if self.recurring else None
