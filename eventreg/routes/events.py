import uuid

from fastapi import APIRouter, Depends

from eventreg.routes.deps import get_current_user_id, get_registration_service, to_http_exception
from eventreg.schemas.events import EventCapacityOut
from eventreg.schemas.registrations import RegistrationOut
from eventreg.services.errors import RegistrationError
from eventreg.services.registrations import RegistrationService

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/{event_id}/registrations", response_model=list[RegistrationOut])
def event_registrations(
    event_id: uuid.UUID,
    organizer_id: uuid.UUID = Depends(get_current_user_id),
    service: RegistrationService = Depends(get_registration_service),
):
    try:
        return service.get_event_registrations(event_id, organizer_id)
    except RegistrationError as e:
        raise to_http_exception(e)


@router.get("/{event_id}/capacity", response_model=EventCapacityOut)
def event_capacity(event_id: uuid.UUID, service: RegistrationService = Depends(get_registration_service)):
    try:
        info = service.get_event_capacity(event_id)
    except RegistrationError as e:
        raise to_http_exception(e)
    return EventCapacityOut(event_id=event_id, total=info.total, available=info.available, waitlist=info.waitlist)
