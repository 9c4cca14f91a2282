"""Public routes: registration, pass lookup and the status gate."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from epass.attendees.registration import register_attendee
from epass.attendees.registry import attendee_view, find_pass, lookup_registration
from epass.attendees.status import get_public_status
from epass.core.config import Settings, get_settings
from epass.core.database import get_session
from epass.core.deps import limit_scan_payload
from epass.core.errors import ValidationError, ok
from epass.core.ratelimit import limit_find_pass
from epass.integrations.images import CloudinaryImageHost, get_image_host

router = APIRouter(prefix="/api", tags=["public"])


class RegisterRequest(BaseModel):
    fullName: str | None = None
    phone: str | int | None = None
    email: str | None = None
    city: str | None = None
    state: str | None = None
    profileImage: str | None = None


class FindPassRequest(BaseModel):
    email: str | None = None
    phone: str | int | None = None


class VerifyRequest(BaseModel):
    registrationId: str | None = None
    action: str = "lookup"


@router.post("/register")
async def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    image_host: CloudinaryImageHost | None = Depends(get_image_host),
):
    """
    Register a visitor and issue their e-pass.

    Returns the new attendee, including the generated registration ID.
    Returns 400 when the form is invalid or registration is closed, 409 when
    the phone number is already registered and 503 when the database or the
    image host is unavailable.
    """
    attendee = register_attendee(
        session, payload.model_dump(), image_host, settings.registration_prefix
    )
    return ok(
        "E-pass issued",
        {"registrationId": attendee.registration_id, "attendee": attendee_view(session, attendee)},
    )


@router.post("/find-pass", dependencies=[Depends(limit_find_pass)])
async def find_existing_pass(
    payload: FindPassRequest,
    session: Session = Depends(get_session),
):
    """Find an issued e-pass by e-mail or phone number."""
    phone = str(payload.phone) if payload.phone is not None else None
    view = find_pass(session, email=payload.email, phone=phone)
    return ok(data={"attendee": view})


@router.post("/verify", dependencies=[Depends(limit_scan_payload)])
async def verify(
    payload: VerifyRequest,
    session: Session = Depends(get_session),
):
    """
    Look up a registration from a scanned QR code or typed ID.

    The response includes ``isCheckedIn`` so the scanner can warn before
    admitting someone twice. Only the "lookup" action is supported.
    """
    if payload.action != "lookup":
        raise ValidationError("Unsupported action.")
    view = lookup_registration(session, payload.registrationId)
    return ok(data={"attendee": view})


@router.get("/public-status")
async def public_status(session: Session = Depends(get_session)):
    """Registration and maintenance switches. Fails closed, never errors."""
    return ok(data=get_public_status(session))
