"""FastAPI dependencies."""

import asyncio
from functools import lru_cache
from typing import Annotated
from uuid import UUID

import httpx
import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import AuthorizationDeniedException
from app.core.observability import Observability, get_observability
from app.core.retry import RetryPolicy
from app.core.security import ServiceTokenProvider, decode_access_token
from app.database import get_db
from app.schemas.auth import Actor, Role
from app.services.appointment_service import AppointmentService
from app.services.facility_service import FacilityValidator
from app.services.identity_service import IdentityValidator
from app.services.notification_service import Notifier

# Security
security = HTTPBearer(auto_error=False)

# Notification deliveries still running after their request has answered
background_deliveries: set[asyncio.Task] = set()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Actor:
    """
    Extract and validate the calling actor from a JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Actor identified by the token's ``sub`` and ``role`` claims

    Raises:
        HTTPException: If token is missing, invalid or expired
        AuthorizationDeniedException: If the token claims the internal system role
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    actor_id = payload.get("sub")
    role = payload.get("role")
    if not isinstance(actor_id, str) or not isinstance(role, str):
        raise _credentials_error()

    try:
        UUID(actor_id)
    except ValueError:
        raise _credentials_error("Invalid user ID format")

    # The system actor only exists inside the process; tokens cannot claim it
    if role == Role.SYSTEM.value:
        raise AuthorizationDeniedException("Role not permitted for API access")

    structlog.contextvars.bind_contextvars(actor_id=actor_id, actor_role=role)
    return Actor(id=actor_id, role=role)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared outbound HTTP client created at startup."""
    return request.app.state.http_client


@lru_cache
def get_token_provider() -> ServiceTokenProvider:
    """Get the process-wide service credential provider."""
    return ServiceTokenProvider.from_settings()


def get_retry_policy() -> RetryPolicy:
    """Retry policy for collaborator lookups."""
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        delay=settings.retry_delay_seconds,
    )


HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]
TokenProvider = Annotated[ServiceTokenProvider, Depends(get_token_provider)]
ObservabilityHandle = Annotated[Observability, Depends(get_observability)]


def get_identity_validator(
    http_client: HttpClient,
    token_provider: TokenProvider,
    observability: ObservabilityHandle,
    retry_policy: Annotated[RetryPolicy, Depends(get_retry_policy)],
) -> IdentityValidator:
    """Build the identity validator around the shared HTTP client."""
    return IdentityValidator(
        base_url=settings.identity_service_url,
        http_client=http_client,
        token_provider=token_provider,
        retry_policy=retry_policy,
        observability=observability,
        timeout=settings.external_timeout_seconds,
    )


def get_facility_validator(
    http_client: HttpClient,
    token_provider: TokenProvider,
    observability: ObservabilityHandle,
    retry_policy: Annotated[RetryPolicy, Depends(get_retry_policy)],
) -> FacilityValidator:
    """Build the facility validator around the shared HTTP client."""
    return FacilityValidator(
        base_url=settings.facility_service_url,
        http_client=http_client,
        token_provider=token_provider,
        retry_policy=retry_policy,
        observability=observability,
        timeout=settings.external_timeout_seconds,
    )


def get_notifier(
    http_client: HttpClient,
    token_provider: TokenProvider,
    observability: ObservabilityHandle,
) -> Notifier:
    """Build the notifier; in-flight deliveries are tracked process-wide."""
    return Notifier(
        base_url=settings.notification_service_url,
        http_client=http_client,
        token_provider=token_provider,
        observability=observability,
        timeout=settings.external_timeout_seconds,
        grace_seconds=settings.notification_grace_seconds,
        pending=background_deliveries,
    )


def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: Annotated[IdentityValidator, Depends(get_identity_validator)],
    facility: Annotated[FacilityValidator, Depends(get_facility_validator)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    observability: ObservabilityHandle,
) -> AppointmentService:
    """Build the per-request appointment service."""
    return AppointmentService(
        db=db,
        identity=identity,
        facility=facility,
        notifier=notifier,
        observability=observability,
        buffer_minutes=settings.conflict_buffer_minutes,
    )


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
