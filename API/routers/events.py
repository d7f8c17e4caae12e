"""
Events and event registrations.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import PermissionChecker, get_current_profile, require_owner_or_admin
from core.permissions import PermissionType
from schemas.base import ErrorResponse, SuccessResponse
from schemas.events import (
    EventCreate, EventUpdate, EventResponse,
    RegisterRequest, OwnerRegisterRequest, RegistrationResponse,
)
from services.events import EventService
from services.stripe_gateway import StripeGateway, get_stripe_gateway


router = APIRouter()

can_view = PermissionChecker([PermissionType.VIEW_EVENTS])
can_manage = PermissionChecker([PermissionType.MANAGE_EVENTS])


def _to_response(service: EventService, event) -> EventResponse:
    response = EventResponse.model_validate(event)
    response.registered_count = service.active_count(event.id)
    return response


@router.get("", response_model=List[EventResponse])
async def list_events(
    upcoming: bool = Query(False),
    profile: Profile = Depends(can_view),
    db: Session = Depends(get_db)
):
    service = EventService(db)
    return [_to_response(service, e) for e in service.list_events(upcoming_only=upcoming)]


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    service = EventService(db)
    event = service.create_event(data.model_dump(), created_by=profile)
    return _to_response(service, event)


# Registration routes come before /{event_id} so "register" is not read as an id

@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def register(
    data: RegisterRequest,
    profile: Profile = Depends(can_view),
    db: Session = Depends(get_db)
):
    """Register the caller or members of their family for an event."""
    return EventService(db).register(profile, data.event_id, data.student_ids)


@router.delete("/register", response_model=RegistrationResponse)
async def cancel_registration(
    registration_id: int = Query(...),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return EventService(db).cancel_registration(profile, registration_id)


@router.post(
    "/register-by-owner",
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def register_by_owner(
    data: OwnerRegisterRequest,
    profile: Profile = Depends(require_owner_or_admin),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """
    Bulk registration by the owner. Paid events are charged to the
    stored default card where possible, otherwise the student is notified.
    """
    service = EventService(db, gateway=gateway)
    return service.register_by_owner(profile, data.event_id, data.student_profile_ids)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    profile: Profile = Depends(can_view),
    db: Session = Depends(get_db)
):
    service = EventService(db)
    return _to_response(service, service.get_event(event_id))


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    data: EventUpdate,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    service = EventService(db)
    event = service.update_event(event_id, data.model_dump(exclude_unset=True))
    return _to_response(service, event)


@router.delete("/{event_id}", response_model=SuccessResponse)
async def delete_event(
    event_id: int,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    EventService(db).delete_event(event_id)
    return SuccessResponse(message="Event deleted")


@router.get("/{event_id}/registrations", response_model=List[RegistrationResponse])
async def list_registrations(
    event_id: int,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    event = EventService(db).get_event(event_id)
    return event.registrations.filter_by(cancelled_at=None).all()
