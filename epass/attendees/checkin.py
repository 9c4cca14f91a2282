"""Idempotent staff check-in.

Admission is decided by ``Attendee.status``. Checking in an attendee who is
already ``checked_in`` succeeds without writing anything, so scanners can
safely retry.

The audit row is written with ``INSERT ... SELECT ... WHERE NOT EXISTS``
keyed on (attendee_id, method). The existence check and the insert are not
atomic, and there is no unique constraint behind them: two concurrent
check-ins of the same pass may leave two audit rows or none. The status
column always converges to ``checked_in``.
"""
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import exists, insert, literal, select
from sqlmodel import Session

from epass.attendees.registry import find_by_registration_id, validate_registration_id
from epass.core.errors import NotFound, raise_for_database_error
from epass.models import CHECKIN_METHODS, Attendee, Checkin

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "qr_scan"


@dataclass
class CheckinResult:
    attendee: Attendee
    already_checked_in: bool


def normalize_method(method) -> str:
    return method if method in CHECKIN_METHODS else DEFAULT_METHOD


def normalize_notes(notes) -> str | None:
    """Keep string notes as-is and JSON-encode anything else."""
    if notes is None or notes == "":
        return None
    if isinstance(notes, str):
        return notes
    return json.dumps(notes)


def mark_checked_in(session: Session, attendee: Attendee, now: datetime) -> None:
    attendee.status = "checked_in"
    attendee.updated_at = now
    session.add(attendee)
    session.flush()


def record_checkin(
    session: Session,
    attendee: Attendee,
    method: str,
    location: str | None,
    notes: str | None,
    now: datetime,
) -> bool:
    """Insert an audit row unless one exists for (attendee, method).

    Returns True if a row was written.
    """
    table = Checkin.__table__
    already_recorded = exists().where(
        table.c.attendee_id == attendee.id,
        table.c.method == method,
    )
    candidate = select(
        literal(uuid4(), table.c.id.type),
        literal(attendee.id, table.c.attendee_id.type),
        literal(method, table.c.method.type),
        literal(location, table.c.location.type),
        literal(notes, table.c.notes.type),
        literal(now, table.c.created_at.type),
    ).where(~already_recorded)
    statement = insert(table).from_select(
        ["id", "attendee_id", "method", "location", "notes", "created_at"],
        candidate,
    )
    result = session.connection().execute(statement)
    return result.rowcount > 0


def check_in(
    session: Session,
    registration_id,
    method=DEFAULT_METHOD,
    location: str | None = None,
    notes=None,
) -> CheckinResult:
    """Admit the attendee holding ``registration_id``.

    Raises ValidationError for a malformed ID, NotFound when no attendee
    holds it, UpstreamUnavailable when the database cannot be reached and
    InternalError for anything else.
    """
    rid = validate_registration_id(registration_id)
    method = normalize_method(method)
    notes = normalize_notes(notes)
    location = location.strip() if isinstance(location, str) and location.strip() else None

    try:
        attendee = find_by_registration_id(session, rid)
        if attendee is None:
            raise NotFound("E-pass not found for provided Registration ID.")

        if attendee.is_checked_in:
            logger.info(f"{rid} already checked in, nothing to do")
            return CheckinResult(attendee=attendee, already_checked_in=True)

        now = datetime.now(UTC)
        mark_checked_in(session, attendee, now)
        recorded = record_checkin(session, attendee, method, location, notes, now)
        session.commit()
        session.refresh(attendee)
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, f"check-in of {rid}")

    if not recorded:
        logger.warning(f"Audit row for {rid} ({method}) already existed, not duplicated")
    logger.info(f"Checked in {rid} via {method}")
    return CheckinResult(attendee=attendee, already_checked_in=False)
