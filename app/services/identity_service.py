"""Resolution of patient and doctor identities against the identity service."""

from typing import Any

from pydantic import ValidationError

from app.core.exceptions import ValidationRejectedException
from app.schemas.auth import Role
from app.schemas.collaborators import Person
from app.services.service_client import ServiceClient


class IdentityValidator(ServiceClient):
    """Confirms an identifier is a real person with the expected role."""

    service_name = "identity-service"
    resource_name = "user"

    async def validate_identity(self, person_id: Any, expected_role: Role) -> Person:
        """
        Resolve a person and check their role.

        Doctors must additionally be KYC-verified.

        Args:
            person_id: Patient or doctor identifier
            expected_role: Role the identifier must hold

        Returns:
            Person record from the identity service

        Raises:
            ValidationRejectedException: Unknown id, role mismatch or unverified doctor
            DependencyUnavailableException: If the identity service is unreachable
        """
        document = await self.fetch(f"/users/{person_id}", target_id=person_id)
        try:
            person = Person.model_validate(document)
        except ValidationError as exc:
            raise ValidationRejectedException(
                f"User {person_id} has an unreadable identity record",
                target_id=person_id,
            ) from exc

        if person.role != expected_role.value:
            raise ValidationRejectedException(
                f"Invalid user role: expected {expected_role.value}, got {person.role}",
                target_id=person_id,
            )

        if expected_role == Role.DOCTOR and not person.kyc_verified:
            raise ValidationRejectedException(
                "Doctor KYC not verified",
                target_id=person_id,
                status_code=403,
            )

        return person
