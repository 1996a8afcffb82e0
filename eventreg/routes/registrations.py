import uuid

from fastapi import APIRouter, Depends, HTTPException

from eventreg.routes.deps import get_current_user_id, get_registration_service, to_http_exception
from eventreg.schemas.registrations import RegistrationCreate, RegistrationOut, RegistrationUpdate
from eventreg.services.errors import RegistrationError
from eventreg.services.registrations import RegistrationService

router = APIRouter(prefix="/registrations", tags=["registrations"])


@router.post("", response_model=RegistrationOut, status_code=201)
def register_for_event(
    payload: RegistrationCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: RegistrationService = Depends(get_registration_service),
):
    try:
        return service.register_for_event(user_id, payload)
    except RegistrationError as e:
        raise to_http_exception(e)


@router.get("/me", response_model=list[RegistrationOut])
def my_registrations(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: RegistrationService = Depends(get_registration_service),
):
    return service.get_user_registrations(user_id)


@router.get("/{registration_id}", response_model=RegistrationOut)
def get_registration(registration_id: uuid.UUID, service: RegistrationService = Depends(get_registration_service)):
    registration = service.get_registration_by_id(registration_id)
    if not registration:
        raise HTTPException(status_code=404, detail="Registration not found")
    return registration


@router.patch("/{registration_id}", response_model=RegistrationOut)
def update_registration(
    registration_id: uuid.UUID,
    payload: RegistrationUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: RegistrationService = Depends(get_registration_service),
):
    try:
        return service.update_registration(user_id, registration_id, payload)
    except RegistrationError as e:
        raise to_http_exception(e)


@router.post("/{registration_id}/cancel", response_model=RegistrationOut)
def cancel_registration(
    registration_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: RegistrationService = Depends(get_registration_service),
):
    try:
        return service.cancel_registration(user_id, registration_id)
    except RegistrationError as e:
        raise to_http_exception(e)


@router.post("/{registration_id}/check-in", response_model=RegistrationOut)
def check_in(
    registration_id: uuid.UUID,
    organizer_id: uuid.UUID = Depends(get_current_user_id),
    service: RegistrationService = Depends(get_registration_service),
):
    try:
        return service.check_in_user(organizer_id, registration_id)
    except RegistrationError as e:
        raise to_http_exception(e)
