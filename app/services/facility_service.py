"""Facility existence checks against the facility service."""

from typing import Any

from pydantic import ValidationError

from app.core.exceptions import ValidationRejectedException
from app.schemas.collaborators import Facility
from app.services.service_client import ServiceClient


class FacilityValidator(ServiceClient):
    """Confirms a facility exists and accepts appointments."""

    service_name = "facility-service"
    resource_name = "facility"

    async def validate_facility(self, facility_id: Any) -> Facility:
        """Resolve an active facility or raise ``ValidationRejectedException``."""
        document = await self.fetch(f"/facilities/{facility_id}", target_id=facility_id)
        try:
            facility = Facility.model_validate(document)
        except ValidationError as exc:
            raise ValidationRejectedException(
                f"Facility {facility_id} has an unreadable record",
                target_id=facility_id,
            ) from exc

        if not facility.is_active:
            raise ValidationRejectedException(
                f"Facility {facility_id} is not active",
                target_id=facility_id,
            )
        return facility
