"""Tests for actor tokens and the service credential."""

from datetime import UTC, datetime, timedelta

from jose import jwt

from app.core.security import ServiceTokenProvider, create_access_token, decode_access_token


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_access_token_round_trip() -> None:
    token = create_access_token({"sub": "abc", "role": "patient"}, timedelta(minutes=5))
    payload = decode_access_token(token)
    assert payload is not None
    assert payload["role"] == "patient"
    assert payload["type"] == "access"


def test_expired_access_token_is_rejected() -> None:
    token = create_access_token({"sub": "abc", "role": "patient"}, timedelta(minutes=-5))
    assert decode_access_token(token) is None


def test_service_token_is_cached_until_near_expiry() -> None:
    clock = Clock(datetime(2030, 1, 1, tzinfo=UTC))
    provider = ServiceTokenProvider(
        secret_key="secret",
        service_key="service-key",
        issuer="appointment-service",
        expires_in=timedelta(minutes=60),
        clock=clock,
    )

    first = provider.get_token()
    clock.now += timedelta(minutes=58)
    assert provider.get_token() == first

    clock.now += timedelta(minutes=1, seconds=1)
    refreshed = provider.get_token()
    assert refreshed != first

    claims = jwt.decode(refreshed, "secret", algorithms=["HS256"], options={"verify_exp": False})
    assert claims["key"] == "service-key"
    assert claims["iss"] == "appointment-service"
    assert claims["exp"] - claims["iat"] == 3600
