"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from app.dependencies import AppointmentServiceDep, CurrentActor
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentType,
    AppointmentUpdate,
)

router = APIRouter()


@router.post(
    "/",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create appointment or recurring series",
)
async def create_appointment(
    data: AppointmentCreate,
    response: Response,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> list[AppointmentResponse]:
    """
    Create an appointment. With a recurrence, every instance of the series
    is created in one go, or none of them is.

    Args:
        data: Appointment creation data
        response: Outgoing response, used for the series count header
        actor: Authenticated actor
        service: Appointment service

    Returns:
        Created appointments
    """
    result = await service.create_appointment(actor, data)
    if result.recurring_count is not None:
        response.headers["X-Recurring-Count"] = str(result.recurring_count)
    return result.appointments


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    service: AppointmentServiceDep,
    patient_id: UUID | None = Query(None),
    doctor_id: UUID | None = Query(None),
    facility_id: UUID | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    type_filter: AppointmentType | None = Query(None, alias="type"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the authenticated actor.

    Args:
        actor: Authenticated actor
        service: Appointment service
        patient_id: Filter by patient (admins only; others are pinned to themselves)
        doctor_id: Filter by doctor
        facility_id: Filter by facility
        status_filter: Filter by status
        type_filter: Filter by appointment type
        start_date: Earliest start time
        end_date: Latest start time
        page: Page number
        limit: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        patient_id=patient_id,
        doctor_id=doctor_id,
        facility_id=facility_id,
        status=status_filter,
        type=type_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return await service.list_appointments(actor, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found or outside the actor's scope
    """
    return await service.get_appointment(actor, appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Update an existing appointment.

    Args:
        appointment_id: Appointment ID
        data: Fields to change
        actor: Authenticated actor
        service: Appointment service

    Returns:
        Updated appointment
    """
    return await service.update_appointment(actor, appointment_id, data)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> None:
    """Cancel an appointment. It disappears from every subsequent read."""
    await service.cancel_appointment(actor, appointment_id)
