"""Declarative business rules for appointment payloads.

Each field carries a list of ``FieldRule`` entries. ``evaluate`` runs every
rule against a payload and returns a tagged result instead of raising, so
callers see all violations at once.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 120
MAX_NOTES_LENGTH = 500

Predicate = Callable[[Any, Mapping[str, Any], datetime], bool]


@dataclass(frozen=True)
class Violation:
    """A single field-level rule failure."""

    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class Valid:
    """Every rule passed."""


@dataclass(frozen=True)
class Invalid:
    """At least one rule failed."""

    violations: tuple[Violation, ...]

    def as_errors(self) -> list[dict[str, str]]:
        return [violation.as_dict() for violation in self.violations]


ValidationResult = Valid | Invalid


@dataclass(frozen=True)
class FieldRule:
    """
    Constraint on one (possibly dotted) payload field.

    ``check`` receives the field value, the whole payload and the reference
    time. Absent fields are skipped unless ``required`` is set.
    """

    field: str
    check: Predicate
    message: str
    required: bool = False


def _lookup(data: Mapping[str, Any], path: str) -> tuple[bool, Any]:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or current.get(part) is None:
            return False, None
        current = current[part]
    return True, current


def evaluate(
    rules: Sequence[FieldRule],
    data: Mapping[str, Any],
    now: datetime,
) -> ValidationResult:
    """Evaluate ``rules`` against ``data`` and collect every violation."""
    violations: list[Violation] = []
    for rule in rules:
        present, value = _lookup(data, rule.field)
        if not present:
            if rule.required:
                violations.append(Violation(rule.field, rule.message))
            continue
        if not rule.check(value, data, now):
            violations.append(Violation(rule.field, rule.message))

    if violations:
        return Invalid(tuple(violations))
    return Valid()


def _recurring(data: Mapping[str, Any]) -> bool:
    recurrence = data.get("recurrence")
    return isinstance(recurrence, Mapping) and recurrence.get("type") is not None


def _in_future(value: datetime, data: Mapping[str, Any], now: datetime) -> bool:
    return value > now


def _duration_in_bounds(value: int, data: Mapping[str, Any], now: datetime) -> bool:
    return MIN_DURATION_MINUTES <= value <= MAX_DURATION_MINUTES


def _notes_length(value: str, data: Mapping[str, Any], now: datetime) -> bool:
    return len(value) <= MAX_NOTES_LENGTH


def _interval_positive(value: int, data: Mapping[str, Any], now: datetime) -> bool:
    return value >= 1


def _interval_required(value: Any, data: Mapping[str, Any], now: datetime) -> bool:
    return not _recurring(data) or _lookup(data, "recurrence.interval")[0]


def _end_date_required(value: Any, data: Mapping[str, Any], now: datetime) -> bool:
    return not _recurring(data) or _lookup(data, "recurrence.end_date")[0]


def _end_after_start(value: datetime, data: Mapping[str, Any], now: datetime) -> bool:
    # Updates that leave the date alone compare against the stored start
    start = data.get("date") or data.get("current_date")
    return start is None or value > start


_SHARED_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        "duration",
        _duration_in_bounds,
        f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes",
    ),
    FieldRule(
        "notes",
        _notes_length,
        f"Notes cannot exceed {MAX_NOTES_LENGTH} characters",
    ),
    FieldRule(
        "recurrence.type",
        _interval_required,
        "Recurrence interval is required when a recurrence type is set",
    ),
    FieldRule(
        "recurrence.type",
        _end_date_required,
        "Recurrence end date is required when a recurrence type is set",
    ),
    FieldRule(
        "recurrence.interval",
        _interval_positive,
        "Recurrence interval must be a positive integer",
    ),
    FieldRule(
        "recurrence.end_date",
        _end_after_start,
        "Recurrence end date must be after the appointment date",
    ),
)

CREATE_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        "date",
        _in_future,
        "Appointment date must be in the future",
        required=True,
    ),
    *_SHARED_RULES,
)

UPDATE_RULES: tuple[FieldRule, ...] = (
    FieldRule("date", _in_future, "Appointment date must be in the future"),
    *_SHARED_RULES,
)
