"""Detection of double-booked doctor calendars."""

from datetime import datetime, timedelta
from uuid import UUID

from app.core.exceptions import SchedulingConflictException
from app.core.observability import Observability
from app.repositories.appointment_repository import AppointmentRepository

# Upper bound on any appointment's duration, in minutes
MAX_DURATION_MINUTES = 120
DEFAULT_BUFFER_MINUTES = 120


def windows_conflict(
    existing_start: datetime,
    existing_end: datetime,
    proposed_start: datetime,
    proposed_end: datetime,
    buffer: timedelta,
) -> bool:
    """
    Whether an existing booking blocks a proposed window.

    Each booking claims ``[start - buffer, end)``. Two bookings conflict when
    those effective windows intersect, so the answer does not depend on which
    of the two was booked first.
    """
    return existing_start - buffer < proposed_end and proposed_start - buffer < existing_end


class ConflictDetector:
    """Checks a proposed window against a doctor's active schedule."""

    def __init__(
        self,
        repository: AppointmentRepository,
        observability: Observability,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    ):
        self.repository = repository
        self.obs = observability
        self.buffer = timedelta(minutes=buffer_minutes)

    async def find_conflict(
        self,
        doctor_id: UUID,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> tuple[datetime, datetime] | None:
        """Return the window of the first blocking booking, if any."""
        # Nothing starting outside this range can reach the proposed window
        starts_from = proposed_start - self.buffer - timedelta(minutes=MAX_DURATION_MINUTES)
        candidates = await self.repository.find_active_for_doctor(
            doctor_id,
            starts_from=starts_from,
            starts_before=proposed_end + self.buffer,
            exclude_appointment_id=exclude_appointment_id,
        )

        for row in candidates:
            start = row["date"]
            end = start + timedelta(minutes=row["duration"])
            if windows_conflict(start, end, proposed_start, proposed_end, self.buffer):
                return start, end
        return None

    async def has_conflict(
        self,
        doctor_id: UUID,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """Whether the proposed window is blocked for this doctor."""
        window = await self.find_conflict(
            doctor_id, proposed_start, proposed_end, exclude_appointment_id
        )
        return window is not None

    async def ensure_available(
        self,
        doctor_id: UUID,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> None:
        """
        Raise if the proposed window is blocked.

        Raises:
            SchedulingConflictException: If an active booking blocks the window
        """
        window = await self.find_conflict(
            doctor_id, proposed_start, proposed_end, exclude_appointment_id
        )
        if window is None:
            return

        self.obs.metrics.conflicts.inc()
        self.obs.logger.info(
            "scheduling_conflict",
            doctor_id=str(doctor_id),
            proposed_start=proposed_start.isoformat(),
            proposed_end=proposed_end.isoformat(),
            existing_start=window[0].isoformat(),
            existing_end=window[1].isoformat(),
        )
        raise SchedulingConflictException(doctor_id, window[0], window[1])
