import json
import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

# Settings are read at import time; give the test run safe defaults first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SERVICE_KEY", "test-service-key")
os.environ.setdefault("RETRY_DELAY_SECONDS", "0")
os.environ.setdefault("ENVIRONMENT", "testing")

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Load environment variables from .env file
load_dotenv()

from app.config import settings
from app.core.security import create_access_token
from app.database import get_db
from app.dependencies import background_deliveries, get_http_client
from app.main import app
from app.models.appointments import metadata
from app.services.notification_service import drain_deliveries

# Test database URL - in-memory SQLite unless TEST_DATABASE_URL points elsewhere
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")

if not TEST_DATABASE_URL.startswith("sqlite") and settings.database_url == TEST_DATABASE_URL:
    raise RuntimeError("TEST_DATABASE_URL must not point at the application database")

# Ensure we're using asyncpg driver for async operations
TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"poolclass": NullPool}


class FakeCollaborators:
    """In-memory identity, facility and notification services."""

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.facilities: dict[str, dict] = {}
        self.notifications: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.identity_status: int | None = None
        self.notification_status: int = 201

    def add_user(self, role: str, **fields) -> UUID:
        user_id = uuid4()
        self.users[str(user_id)] = {
            "id": str(user_id),
            "role": role,
            "kycVerified": fields.pop("kyc_verified", role == "doctor"),
            **fields,
        }
        return user_id

    def add_facility(self, is_active: bool = True) -> UUID:
        facility_id = uuid4()
        self.facilities[str(facility_id)] = {
            "id": str(facility_id),
            "name": "Central Clinic",
            "isActive": is_active,
        }
        return facility_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/notifications"):
            self.notifications.append(json_body(request))
            return httpx.Response(self.notification_status, json={"success": True})

        if path.startswith("/api/users/"):
            if self.identity_status is not None:
                return httpx.Response(self.identity_status)
            user = self.users.get(path.rsplit("/", 1)[1])
            if user is None:
                return httpx.Response(404, json={"message": "User not found"})
            return httpx.Response(200, json={"success": True, "data": user})

        if path.startswith("/api/facilities/"):
            facility = self.facilities.get(path.rsplit("/", 1)[1])
            if facility is None:
                return httpx.Response(404, json={"message": "Facility not found"})
            return httpx.Response(200, json=facility)

        return httpx.Response(404)


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content)


def make_token(actor_id: UUID | str, role: str) -> dict:
    """Authorization header for an actor."""
    token = create_access_token(
        data={"sub": str(actor_id), "role": role},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


def future_slot(days: int = 2, hour: int = 10, minute: int = 0) -> datetime:
    """A UTC start time ``days`` from now at a fixed wall-clock time."""
    return (datetime.now(UTC) + timedelta(days=days)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,  # Set to True for SQL debugging
        **_engine_kwargs(TEST_DATABASE_URL),
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def collaborators() -> FakeCollaborators:
    """Fake collaborator services."""
    return FakeCollaborators()


@pytest_asyncio.fixture
async def http_client(collaborators: FakeCollaborators) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Outbound HTTP client wired to the fake collaborators."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(collaborators.handler)) as client:
        yield client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    http_client: httpx.AsyncClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = lambda: http_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await drain_deliveries(background_deliveries)
    app.dependency_overrides.clear()


@pytest.fixture
def patient_id(collaborators: FakeCollaborators) -> UUID:
    return collaborators.add_user(
        "patient",
        email="patient@example.com",
        phoneNumber="+15550100",
        name="Pat Patient",
    )


@pytest.fixture
def doctor_id(collaborators: FakeCollaborators) -> UUID:
    return collaborators.add_user("doctor", email="doctor@example.com", name="Dana House")


@pytest.fixture
def facility_id(collaborators: FakeCollaborators) -> UUID:
    return collaborators.add_facility()


@pytest.fixture
def patient_headers(patient_id: UUID) -> dict:
    return make_token(patient_id, "patient")


@pytest.fixture
def doctor_headers(doctor_id: UUID) -> dict:
    return make_token(doctor_id, "doctor")


@pytest.fixture
def admin_headers() -> dict:
    return make_token(uuid4(), "admin")


@pytest.fixture
def appointment_payload(patient_id: UUID, doctor_id: UUID, facility_id: UUID) -> dict:
    """Valid single-appointment request body."""
    return {
        "patient_id": str(patient_id),
        "doctor_id": str(doctor_id),
        "facility_id": str(facility_id),
        "date": future_slot().isoformat(),
        "duration": 30,
        "type": "in-person",
        "notes": "Annual checkup",
        "consent": {"given": True, "purpose": "treatment"},
    }


@pytest.fixture
def token_for():
    """Factory for actor authorization headers."""
    return make_token


@pytest.fixture
def slot():
    """Factory for future UTC start times."""
    return future_slot
