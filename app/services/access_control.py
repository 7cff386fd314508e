"""Role-based authorization and query scoping for appointment operations."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from app.core.exceptions import AuthorizationDeniedException
from app.schemas.appointments import AppointmentFilters
from app.schemas.auth import Actor, Role


class Operation(str, Enum):
    """Operations gated by the access controller."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    CANCEL = "cancel"
    COMPLETE = "complete"


# How each role may reach records for each operation:
#   "own"  - only records owned by the actor (patient_id or doctor_id forced)
#   "any"  - unrestricted
# Operations missing from a role's entry are denied.
PERMISSIONS: dict[Role, dict[Operation, str]] = {
    Role.PATIENT: {
        Operation.CREATE: "own",
        Operation.READ: "own",
        Operation.UPDATE: "own",
        Operation.CANCEL: "own",
    },
    Role.DOCTOR: {
        Operation.READ: "own",
    },
    Role.ADMIN: {
        Operation.CREATE: "any",
        Operation.READ: "any",
        Operation.UPDATE: "any",
        Operation.CANCEL: "any",
    },
    Role.SYSTEM: {
        Operation.READ: "any",
        Operation.COMPLETE: "any",
    },
}


@dataclass(frozen=True)
class AccessScope:
    """Ownership constraints applied to every store query for an actor."""

    patient_id: UUID | None = None
    doctor_id: UUID | None = None

    @property
    def unrestricted(self) -> bool:
        return self.patient_id is None and self.doctor_id is None

    def narrow(self, filters: AppointmentFilters) -> AppointmentFilters:
        """Force the scope's owner ids onto caller-supplied filters."""
        forced = {}
        if self.patient_id is not None:
            forced["patient_id"] = self.patient_id
        if self.doctor_id is not None:
            forced["doctor_id"] = self.doctor_id
        return filters.model_copy(update=forced) if forced else filters


class AccessController:
    """Decides whether an actor may run an operation and on which records."""

    def _role(self, actor: Actor) -> Role:
        try:
            return Role(actor.role)
        except ValueError:
            raise AuthorizationDeniedException(f"Access denied: invalid role {actor.role!r}")

    def _actor_uuid(self, actor: Actor) -> UUID:
        try:
            return UUID(actor.id)
        except ValueError:
            raise AuthorizationDeniedException("Access denied: invalid actor identity")

    def scope(self, actor: Actor, operation: Operation) -> AccessScope:
        """
        Authorize ``operation`` and return the scope the store must apply.

        Raises:
            AuthorizationDeniedException: If the role may not run the operation
        """
        role = self._role(actor)
        reach = PERMISSIONS[role].get(operation)
        if reach is None:
            raise AuthorizationDeniedException(
                f"Access denied: {role.value} role not authorized to {operation.value} appointments"
            )
        if reach == "any":
            return AccessScope()

        actor_id = self._actor_uuid(actor)
        if role == Role.DOCTOR:
            return AccessScope(doctor_id=actor_id)
        return AccessScope(patient_id=actor_id)

    def authorize_create(self, actor: Actor, patient_id: UUID) -> None:
        """
        Authorize creating appointments for ``patient_id``.

        Raises:
            AuthorizationDeniedException: If the actor may not book for this patient
        """
        scope = self.scope(actor, Operation.CREATE)
        if scope.patient_id is not None and scope.patient_id != patient_id:
            raise AuthorizationDeniedException(
                "Patients can only create appointments for themselves"
            )
