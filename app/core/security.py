"""Security utilities for actor tokens and service-to-service credentials."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import settings

# Re-mint the service credential this long before it actually expires
SERVICE_TOKEN_REFRESH_MARGIN = timedelta(seconds=60)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode (``sub`` and ``role`` identify the actor)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


class ServiceTokenProvider:
    """Mints the short-lived signed credential sent to collaborators.

    The token is cached and reused until it is within
    ``SERVICE_TOKEN_REFRESH_MARGIN`` of its expiry.
    """

    def __init__(
        self,
        secret_key: str,
        service_key: str,
        issuer: str,
        expires_in: timedelta,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] | None = None,
    ):
        self.secret_key = secret_key
        self.service_key = service_key
        self.issuer = issuer
        self.expires_in = expires_in
        self.algorithm = algorithm
        self._clock = clock or (lambda: datetime.now(UTC))
        self._token: str | None = None
        self._expires_at: datetime | None = None

    @classmethod
    def from_settings(cls) -> "ServiceTokenProvider":
        """Build a provider from application settings."""
        return cls(
            secret_key=settings.jwt_secret_key,
            service_key=settings.service_key,
            issuer=settings.service_token_issuer,
            expires_in=timedelta(minutes=settings.service_token_expire_minutes),
            algorithm=settings.jwt_algorithm,
        )

    def get_token(self) -> str:
        """Return a valid service token, minting a new one when needed."""
        now = self._clock()
        if (
            self._token is not None
            and self._expires_at is not None
            and now < self._expires_at - SERVICE_TOKEN_REFRESH_MARGIN
        ):
            return self._token

        expires_at = now + self.expires_in
        self._token = jwt.encode(
            {
                "key": self.service_key,
                "iss": self.issuer,
                "iat": now,
                "exp": expires_at,
            },
            self.secret_key,
            algorithm=self.algorithm,
        )
        self._expires_at = expires_at
        return self._token

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for an outgoing collaborator call."""
        return {"Authorization": f"Bearer {self.get_token()}"}
