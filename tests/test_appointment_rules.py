"""Tests for declarative appointment payload rules."""

from datetime import UTC, datetime, timedelta

from app.services.appointment_rules import (
    CREATE_RULES,
    UPDATE_RULES,
    FieldRule,
    Invalid,
    Valid,
    evaluate,
)

NOW = datetime(2030, 6, 1, 12, tzinfo=UTC)


def _payload(**overrides) -> dict:
    payload = {
        "date": NOW + timedelta(days=1),
        "duration": 30,
        "notes": "",
        "recurrence": None,
    }
    payload.update(overrides)
    return payload


def _fields(result) -> list[str]:
    assert isinstance(result, Invalid)
    return [error["field"] for error in result.as_errors()]


def test_valid_create_payload() -> None:
    assert isinstance(evaluate(CREATE_RULES, _payload(), NOW), Valid)


def test_date_is_required_on_create() -> None:
    result = evaluate(CREATE_RULES, _payload(date=None), NOW)
    assert _fields(result) == ["date"]


def test_every_violation_is_reported() -> None:
    result = evaluate(
        CREATE_RULES,
        _payload(date=NOW - timedelta(minutes=1), duration=121, notes="x" * 501),
        NOW,
    )
    assert _fields(result) == ["date", "duration", "notes"]


def test_duration_bounds_are_inclusive() -> None:
    assert isinstance(evaluate(CREATE_RULES, _payload(duration=15), NOW), Valid)
    assert isinstance(evaluate(CREATE_RULES, _payload(duration=120), NOW), Valid)
    assert _fields(evaluate(CREATE_RULES, _payload(duration=14), NOW)) == ["duration"]


def test_recurrence_end_must_follow_start() -> None:
    start = NOW + timedelta(days=1)
    recurrence = {"type": "weekly", "interval": 1, "end_date": start}
    result = evaluate(CREATE_RULES, _payload(date=start, recurrence=recurrence), NOW)
    assert _fields(result) == ["recurrence.end_date"]


def test_recurrence_interval_must_be_positive() -> None:
    recurrence = {"type": "daily", "interval": 0, "end_date": NOW + timedelta(days=9)}
    result = evaluate(CREATE_RULES, _payload(recurrence=recurrence), NOW)
    assert _fields(result) == ["recurrence.interval"]


def test_null_recurrence_type_skips_recurrence_rules() -> None:
    recurrence = {"type": None, "interval": None, "end_date": None}
    assert isinstance(evaluate(CREATE_RULES, _payload(recurrence=recurrence), NOW), Valid)


def test_update_rules_only_check_present_fields() -> None:
    assert isinstance(evaluate(UPDATE_RULES, {"notes": "moved"}, NOW), Valid)


def test_update_end_date_compares_with_stored_start() -> None:
    stored = NOW + timedelta(days=10)
    recurrence = {"type": "weekly", "interval": 1, "end_date": NOW + timedelta(days=5)}
    result = evaluate(UPDATE_RULES, {"recurrence": recurrence, "current_date": stored}, NOW)
    assert _fields(result) == ["recurrence.end_date"]


def test_custom_rule() -> None:
    rule = FieldRule("duration", lambda value, data, now: value % 15 == 0, "Use 15 minute steps")
    result = evaluate((rule,), {"duration": 20}, NOW)
    assert isinstance(result, Invalid)
    assert result.as_errors() == [{"field": "duration", "message": "Use 15 minute steps"}]
