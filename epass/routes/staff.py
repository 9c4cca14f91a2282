"""Staff routes: session tokens and check-in."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from sqlmodel import Session

from epass.attendees.checkin import check_in
from epass.attendees.registry import attendee_view
from epass.core.config import Settings, get_settings
from epass.core.database import get_session
from epass.core.deps import limit_scan_payload, require_staff
from epass.core.errors import InternalError, Unauthorized, ok
from epass.core.security import extract_bearer, issue_staff_token, password_matches, verify_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["staff"])


class LoginRequest(BaseModel):
    password: str | None = None


class CheckinRequest(BaseModel):
    registrationId: str | None = None
    method: str | None = None
    location: str | None = None
    notes: Any = None
    deviceInfo: Any = None


def token_response(settings: Settings):
    if not settings.staff_token_secret:
        logger.error("STAFF_TOKEN_SECRET is not set, token issuance disabled")
        raise InternalError("Token service unavailable.")
    token, expires_in = issue_staff_token(
        settings.staff_token_secret, settings.staff_token_ttl_minutes
    )
    return ok("Login successful", {"token": token, "expiresIn": expires_in})


@router.post("/staff/login")
async def staff_login(
    payload: LoginRequest,
    settings: Settings = Depends(get_settings),
):
    """Exchange the staff password for a short-lived token."""
    if not settings.staff_login_password:
        logger.error("STAFF_LOGIN_PASSWORD is not set")
        raise InternalError("Server configuration error. Please contact an administrator.")
    if not password_matches(payload.password or "", settings.staff_login_password):
        raise Unauthorized("Invalid password. Please try again.")
    return token_response(settings)


@router.post("/staff/refresh")
async def staff_refresh(
    payload: LoginRequest | None = None,
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
):
    """
    Rotate a staff token.

    Accepts the legacy password or a still-valid token, either as
    ``Authorization: Bearer ...`` or (password only) in the JSON body.
    """
    credential = extract_bearer(authorization) or (payload.password if payload else "") or ""
    if not credential:
        raise Unauthorized()
    if password_matches(credential, settings.staff_login_password):
        return token_response(settings)
    if verify_token(credential, settings.staff_token_secret) is None:
        raise Unauthorized("Invalid token")
    return token_response(settings)


@router.post("/check-in", dependencies=[Depends(require_staff), Depends(limit_scan_payload)])
async def check_in_attendee(
    payload: CheckinRequest,
    session: Session = Depends(get_session),
):
    """
    Admit an attendee.

    Idempotent: checking in someone already admitted returns 200 with
    ``alreadyCheckedIn`` set and writes nothing.
    """
    result = check_in(
        session,
        payload.registrationId,
        method=payload.method,
        location=payload.location,
        notes=payload.notes if payload.notes not in (None, "") else payload.deviceInfo,
    )
    message = "Attendee already checked in" if result.already_checked_in else "Checked in"
    return ok(
        message,
        {
            "alreadyCheckedIn": result.already_checked_in,
            "attendee": attendee_view(session, result.attendee),
        },
    )
