"""Public registration and e-pass issuance."""
import logging
import re
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from epass.attendees.registry import allocate_registration_id, digits_only
from epass.attendees.status import registration_allowed
from epass.core.errors import (
    Conflict,
    UpstreamUnavailable,
    ValidationError,
    raise_for_database_error,
)
from epass.integrations.images import CloudinaryImageHost
from epass.models import Attendee

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_LENGTH = 10
DUPLICATE_PHONE_MESSAGE = "An attendee with this phone number is already registered."


def clean_registration(data: dict) -> dict:
    """Validate and normalize a registration form. Raises ValidationError."""
    cleaned = {
        "full_name": str(data.get("fullName") or "").strip(),
        "email": str(data.get("email") or "").strip().lower(),
        "city": str(data.get("city") or "").strip(),
        "state": str(data.get("state") or "").strip(),
        "phone": digits_only(data.get("phone")),
        "profile_image": data.get("profileImage") or None,
    }

    if not (cleaned["full_name"] and cleaned["email"] and cleaned["city"] and cleaned["state"]):
        raise ValidationError("Please provide name, email, city, and state.")
    if len(cleaned["phone"]) != PHONE_LENGTH:
        raise ValidationError("Phone number must be 10 digits.")
    if not EMAIL_PATTERN.match(cleaned["email"]):
        raise ValidationError("Email address is invalid.")
    if cleaned["profile_image"] is not None and not isinstance(cleaned["profile_image"], str):
        raise ValidationError("Profile image must be a data URL or base64 string.")
    return cleaned


def register_attendee(
    session: Session,
    data: dict,
    image_host: CloudinaryImageHost | None,
    prefix: str,
) -> Attendee:
    """
    Register a visitor and issue their e-pass.

    Validation and the duplicate-phone check run before anything is written
    or uploaded. A duplicate phone, whether found by the pre-check or by the
    unique constraint on insert, raises Conflict and leaves the existing
    attendee untouched. The profile image upload and the insert are not
    retried on failure.
    """
    cleaned = clean_registration(data)

    if not registration_allowed(session):
        raise ValidationError("Registration is currently closed.")

    try:
        existing = session.exec(
            select(Attendee).where(Attendee.phone == cleaned["phone"])
        ).first()
        if existing is not None:
            raise Conflict(DUPLICATE_PHONE_MESSAGE)
        registration_id = allocate_registration_id(session, prefix)
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, "registration pre-check")

    profile_url = None
    profile_public_id = None
    if cleaned["profile_image"]:
        if image_host is None:
            raise UpstreamUnavailable("Profile image uploads are unavailable right now.")
        uploaded = image_host.upload(cleaned["profile_image"], f"user-{registration_id}")
        profile_url = uploaded.url
        profile_public_id = uploaded.public_id

    now = datetime.now(UTC)
    attendee = Attendee(
        registration_id=registration_id,
        full_name=cleaned["full_name"],
        phone=cleaned["phone"],
        email=cleaned["email"],
        city=cleaned["city"],
        state=cleaned["state"],
        profile_url=profile_url,
        profile_public_id=profile_public_id,
        status="epass_issued",
        last_qr_requested_at=now,
        created_at=now,
        updated_at=now,
    )

    try:
        session.add(attendee)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Registration conflict for phone ending {cleaned['phone'][-4:]}: {e.orig}")
        raise Conflict("An attendee with this phone or registration already exists.") from e
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, "registration insert")

    session.refresh(attendee)
    logger.info(f"Registered {attendee.registration_id}")
    return attendee
