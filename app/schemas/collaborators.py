"""Schemas for the identity, facility and notification collaborators."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Person(BaseModel):
    """Patient or doctor as described by the identity service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | int
    role: str
    kyc_verified: bool = Field(default=False, alias="kycVerified")
    email: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    name: str | None = None


class Facility(BaseModel):
    """Facility as described by the facility service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | int
    name: str | None = None
    is_active: bool = Field(default=True, alias="isActive")


class NotificationChannel(str, Enum):
    """Delivery channel for a notification."""

    EMAIL = "email"
    SMS = "sms"


class NotificationRequest(BaseModel):
    """Body of ``POST /notifications``."""

    model_config = ConfigDict(populate_by_name=True)

    type: NotificationChannel
    recipient: str
    subject: str
    message: str
    external_id: str = Field(alias="externalId")
    phone_number: str | None = Field(default=None, alias="phoneNumber")
