"""Expansion of a recurring appointment request into concrete instances."""

from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta

from app.schemas.appointments import AppointmentDraft, Recurrence, RecurrenceType


def step_start(base_start: datetime, recurrence: Recurrence, steps: int) -> datetime:
    """
    Start time of the instance ``steps`` intervals after the base.

    Monthly steps are counted from the base start, so a series anchored on
    the 31st is clamped to the last day of shorter months and returns to
    the 31st whenever the month allows it.

    Args:
        base_start: Start of the first instance
        recurrence: Recurrence descriptor
        steps: Number of intervals to advance

    Returns:
        Start of the requested instance
    """
    amount = recurrence.interval * steps
    if recurrence.type == RecurrenceType.DAILY:
        return base_start + timedelta(days=amount)
    if recurrence.type == RecurrenceType.WEEKLY:
        return base_start + timedelta(days=amount * 7)
    if recurrence.type == RecurrenceType.MONTHLY:
        return base_start + relativedelta(months=amount)
    raise ValueError(f"Unsupported recurrence type: {recurrence.type}")


def expand(
    base: AppointmentDraft,
    id_factory: Callable[[], UUID] = uuid4,
) -> list[AppointmentDraft]:
    """
    Produce the ordered instances of a (possibly recurring) appointment.

    The base instance is always emitted first; further instances follow
    while their start is on or before the recurrence end date.

    Args:
        base: Base appointment carrying the optional recurrence descriptor
        id_factory: Generator for fresh appointment identifiers

    Returns:
        Instances sorted by start time
    """
    recurrence = base.recurrence
    if recurrence is None:
        return [base]
    if recurrence.interval < 1:
        raise ValueError("Recurrence interval must be a positive integer")

    instances = [base]
    steps = 1
    while True:
        start = step_start(base.date, recurrence, steps)
        if start > recurrence.end_date:
            break
        instances.append(base.model_copy(update={"appointment_id": id_factory(), "date": start}))
        steps += 1

    return instances
