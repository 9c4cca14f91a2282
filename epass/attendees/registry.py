"""Attendee lookups and the public JSON shape of an attendee.

Registration IDs are compared in their normalized form: surrounding
whitespace stripped and upper-cased. Every route that accepts an ID goes
through ``validate_registration_id`` before touching the database.
"""
import logging
import re
import secrets
import string
from datetime import UTC, datetime

from sqlalchemy import func
from sqlmodel import Session, col, select

from epass.core.errors import InternalError, NotFound, ValidationError, raise_for_database_error
from epass.models import Attendee, Checkin

logger = logging.getLogger(__name__)

REGISTRATION_ID_PATTERN = re.compile(r"^[A-Z0-9\-_]+$")
REGISTRATION_ID_MAX_LENGTH = 64
REGISTRATION_SUFFIX_LENGTH = 8
REGISTRATION_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
ALLOCATION_ATTEMPTS = 8


def normalize_registration_id(value) -> str | None:
    """Trim and upper-case a registration ID. Empty input gives None."""
    if value is None:
        return None
    normalized = str(value).strip().upper()
    return normalized or None


def validate_registration_id(value) -> str:
    """Return the normalized ID or raise ValidationError."""
    normalized = normalize_registration_id(value)
    if not normalized:
        raise ValidationError("Registration ID is required.")
    if len(normalized) > REGISTRATION_ID_MAX_LENGTH:
        raise ValidationError("Registration ID is too long.")
    if not REGISTRATION_ID_PATTERN.match(normalized):
        raise ValidationError(
            "Registration ID must be alphanumeric (with optional dash/underscore)."
        )
    return normalized


def generate_registration_id(prefix: str) -> str:
    suffix = "".join(
        secrets.choice(REGISTRATION_SUFFIX_ALPHABET)
        for _ in range(REGISTRATION_SUFFIX_LENGTH)
    )
    return f"{prefix.strip().upper()}-{suffix}"


def allocate_registration_id(session: Session, prefix: str) -> str:
    """Generate a registration ID not yet present in the attendees table."""
    for _ in range(ALLOCATION_ATTEMPTS):
        candidate = generate_registration_id(prefix)
        if find_by_registration_id(session, candidate) is None:
            return candidate
        logger.warning(f"Registration ID collision on {candidate}, regenerating")
    raise InternalError("Could not allocate a unique registration ID.")


def find_by_registration_id(session: Session, registration_id: str) -> Attendee | None:
    statement = select(Attendee).where(
        Attendee.registration_id == registration_id.strip().upper()
    )
    return session.exec(statement).first()


def digits_only(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def find_by_contact(
    session: Session, email: str | None = None, phone: str | None = None
) -> Attendee | None:
    """Find an attendee by e-mail (case-insensitive) or phone (digits only).

    E-mail takes precedence when both are given. Several registrations may
    share an e-mail address; the most recent one wins.
    """
    if email and email.strip():
        statement = (
            select(Attendee)
            .where(func.lower(Attendee.email) == email.strip().lower())
            .order_by(col(Attendee.created_at).desc())
        )
        return session.exec(statement).first()

    phone_digits = digits_only(phone)
    if phone_digits:
        statement = select(Attendee).where(Attendee.phone == phone_digits)
        return session.exec(statement).first()
    return None


def isoformat(value: datetime | None) -> str | None:
    """Serialize a timestamp, treating naive values (SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def latest_checkin(session: Session, attendee: Attendee) -> Checkin | None:
    statement = (
        select(Checkin)
        .where(Checkin.attendee_id == attendee.id)
        .order_by(col(Checkin.created_at).desc())
        .limit(1)
    )
    return session.exec(statement).first()


def count_checkins(session: Session, attendee: Attendee) -> int:
    statement = select(func.count()).select_from(Checkin).where(
        Checkin.attendee_id == attendee.id
    )
    return int(session.exec(statement).one() or 0)


def checkin_view(checkin: Checkin | None) -> dict | None:
    if checkin is None:
        return None
    return {
        "id": str(checkin.id),
        "method": checkin.method,
        "location": checkin.location,
        "notes": checkin.notes,
        "createdAt": isoformat(checkin.created_at),
    }


def attendee_summary(attendee: Attendee) -> dict:
    """Row-level fields of an attendee, used by admin search results."""
    return {
        "id": str(attendee.id),
        "registrationId": attendee.registration_id,
        "fullName": attendee.full_name,
        "phone": attendee.phone,
        "email": attendee.email,
        "city": attendee.city,
        "state": attendee.state,
        "profileUrl": attendee.profile_url,
        "status": attendee.status,
        "createdAt": isoformat(attendee.created_at),
        "updatedAt": isoformat(attendee.updated_at),
        "lastQrRequestedAt": isoformat(attendee.last_qr_requested_at),
        "isCheckedIn": attendee.is_checked_in,
    }


def attendee_view(session: Session, attendee: Attendee) -> dict:
    """Map an attendee row to the JSON shape returned by the API."""
    view = attendee_summary(attendee)
    view["latestCheckin"] = checkin_view(latest_checkin(session, attendee))
    view["totalCheckins"] = count_checkins(session, attendee)
    return view


def lookup_registration(session: Session, registration_id) -> dict:
    """Validate an ID and return the matching attendee view."""
    rid = validate_registration_id(registration_id)
    try:
        attendee = find_by_registration_id(session, rid)
        if attendee is None:
            raise NotFound("E-pass not found for provided Registration ID.")
        return attendee_view(session, attendee)
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, f"lookup of {rid}")


def find_pass(session: Session, email: str | None = None, phone: str | None = None) -> dict:
    """
    Find a previously issued e-pass by e-mail or phone.

    Records the lookup in ``last_qr_requested_at`` and returns the attendee
    view.
    """
    if not (email and str(email).strip()) and not digits_only(phone):
        raise ValidationError("Please provide an email or phone number.")

    try:
        attendee = find_by_contact(session, email=email, phone=phone)
        if attendee is None:
            raise NotFound("No e-pass found for the provided details.")
        attendee.last_qr_requested_at = datetime.now(UTC)
        session.add(attendee)
        session.commit()
        session.refresh(attendee)
        return attendee_view(session, attendee)
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, "pass lookup")
