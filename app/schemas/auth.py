"""Authentication schemas."""

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    """Actor roles. ``system`` is never accepted from a client token."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"
    SYSTEM = "system"


class Actor(BaseModel):
    """Authenticated caller context used for authorization decisions."""

    id: str
    role: str

    model_config = {"frozen": True}

    @classmethod
    def system(cls) -> "Actor":
        """Internal pseudo-actor for automated lifecycle transitions."""
        return cls(id=Role.SYSTEM.value, role=Role.SYSTEM.value)
