#!/usr/bin/env python3
"""
Mark every scheduled appointment whose time window has ended as completed.

Meant to run periodically (cron, Kubernetes CronJob). Runs as the internal
system actor, the only actor allowed to complete appointments.

Usage:
    python scripts/complete_appointments.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import httpx  # noqa: E402
import structlog  # noqa: E402

from app.config import settings  # noqa: E402
from app.core.observability import get_observability  # noqa: E402
from app.core.retry import RetryPolicy  # noqa: E402
from app.core.security import ServiceTokenProvider  # noqa: E402
from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.middleware.logging import configure_logging  # noqa: E402
from app.schemas.auth import Actor  # noqa: E402
from app.services.appointment_service import AppointmentService  # noqa: E402
from app.services.facility_service import FacilityValidator  # noqa: E402
from app.services.identity_service import IdentityValidator  # noqa: E402
from app.services.notification_service import Notifier  # noqa: E402


async def complete_appointments() -> int:
    """Run one completion pass and return the number of appointments completed."""
    observability = get_observability()
    token_provider = ServiceTokenProvider.from_settings()
    retry_policy = RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        delay=settings.retry_delay_seconds,
    )

    async with httpx.AsyncClient(timeout=settings.external_timeout_seconds) as http_client:
        async with AsyncSessionLocal() as session:
            service = AppointmentService(
                db=session,
                identity=IdentityValidator(
                    settings.identity_service_url,
                    http_client,
                    token_provider,
                    retry_policy,
                    observability,
                ),
                facility=FacilityValidator(
                    settings.facility_service_url,
                    http_client,
                    token_provider,
                    retry_policy,
                    observability,
                ),
                notifier=Notifier(
                    settings.notification_service_url,
                    http_client,
                    token_provider,
                    observability,
                ),
                observability=observability,
            )
            return await service.complete_elapsed(Actor.system())


async def main() -> None:
    configure_logging()
    logger = structlog.get_logger()
    try:
        completed = await complete_appointments()
        logger.info("completion_pass_finished", completed=completed)
    except Exception as e:
        logger.error("completion_pass_failed", error=str(e))
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
