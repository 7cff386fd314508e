"""Best-effort appointment notifications via the notification service."""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

import httpx

from app.core.observability import Observability
from app.core.security import ServiceTokenProvider
from app.schemas.appointments import AppointmentResponse
from app.schemas.collaborators import NotificationChannel, NotificationRequest, Person

Compose = Callable[[], Awaitable[list[NotificationRequest]]]


class AppointmentEvent(str, Enum):
    """Lifecycle events patients are told about."""

    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"


def build_notifications(
    event: AppointmentEvent,
    patient: Person,
    appointment: AppointmentResponse,
    doctor: Person | None = None,
) -> list[NotificationRequest]:
    """
    Email (and SMS when the patient has a phone number) for one event.

    Args:
        event: Lifecycle event
        patient: Recipient
        appointment: Appointment the event concerns
        doctor: Treating doctor, used in confirmation wording when known

    Returns:
        Notifications to send, possibly empty if the patient has no contact
    """
    when = appointment.date.isoformat()
    kind = appointment.type.value
    external_id = str(appointment.appointment_id)

    if event == AppointmentEvent.CREATED:
        with_doctor = f" with Dr. {doctor.name}" if doctor and doctor.name else ""
        subject = f"Appointment Confirmation - {kind}"
        message = f"Your {kind} appointment{with_doctor} on {when} is confirmed."
        short = f"Your {kind} appt{with_doctor} on {when} is confirmed."
    elif event == AppointmentEvent.UPDATED:
        subject = "Appointment Updated"
        message = f"Your appointment on {when} has been updated."
        short = f"Your appt on {when} updated."
    else:
        subject = "Appointment Cancelled"
        message = f"Your appointment on {when} has been cancelled."
        short = f"Your appt on {when} cancelled."

    notifications = []
    if patient.email:
        notifications.append(
            NotificationRequest(
                type=NotificationChannel.EMAIL,
                recipient=patient.email,
                subject=subject,
                message=message,
                external_id=external_id,
            )
        )
    if patient.phone_number:
        notifications.append(
            NotificationRequest(
                type=NotificationChannel.SMS,
                recipient=patient.email or patient.phone_number,
                subject=subject,
                message=short,
                external_id=external_id,
                phone_number=patient.phone_number,
            )
        )
    return notifications


class Notifier:
    """
    Fire-and-forget notification dispatcher.

    Deliveries run in a background task. ``dispatch`` waits at most
    ``grace_seconds`` for it and never raises; failures only produce a
    warning log and a metric.
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient,
        token_provider: ServiceTokenProvider,
        observability: Observability,
        timeout: float = 5.0,
        grace_seconds: float = 0.5,
        pending: set[asyncio.Task] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client
        self.token_provider = token_provider
        self.obs = observability
        self.timeout = timeout
        self.grace_seconds = grace_seconds
        # Shared across notifier instances so tasks outlive the request that spawned them
        self._pending: set[asyncio.Task] = pending if pending is not None else set()

    async def send(self, notification: NotificationRequest) -> None:
        """POST one notification; raises on transport or HTTP errors."""
        response = await self.http_client.post(
            f"{self.base_url}/notifications",
            json=notification.model_dump(mode="json", by_alias=True, exclude_none=True),
            headers=self.token_provider.auth_headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        self.obs.logger.info(
            "notification_sent",
            channel=notification.type.value,
            external_id=notification.external_id,
        )

    async def _deliver(self, compose: Compose, external_id: str) -> None:
        try:
            notifications = await compose()
        except Exception as e:
            self.obs.logger.warning(
                "notification_compose_failed",
                external_id=external_id,
                error=str(e),
            )
            return

        for notification in notifications:
            try:
                await self.send(notification)
            except Exception as e:
                self.obs.metrics.notifications_failed.labels(type=notification.type.value).inc()
                self.obs.logger.warning(
                    "notification_failed",
                    channel=notification.type.value,
                    external_id=external_id,
                    error=str(e),
                )

    async def dispatch(self, compose: Compose, external_id: str) -> None:
        """
        Deliver the notifications produced by ``compose`` in the background.

        Args:
            compose: Coroutine factory building the notifications to send
            external_id: Appointment identifier, for logging
        """
        task = asyncio.create_task(self._deliver(compose, external_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        done, _ = await asyncio.wait({task}, timeout=self.grace_seconds)
        if not done:
            self.obs.logger.info("notification_delivery_deferred", external_id=external_id)

    async def drain(self) -> None:
        """Wait for deliveries still in flight, e.g. on shutdown."""
        await drain_deliveries(self._pending)


async def drain_deliveries(pending: set[asyncio.Task]) -> None:
    """Wait for every delivery task in ``pending`` to finish."""
    if pending:
        await asyncio.gather(*list(pending), return_exceptions=True)
