"""Admin dashboard queries: stats, search, edit and delete.

Reads are retried on connection-level failures (``with_retries``); writes
are attempted once and any failure is reported to the caller.
"""
import logging
import math
import time
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from epass.attendees.registration import DUPLICATE_PHONE_MESSAGE, EMAIL_PATTERN, PHONE_LENGTH
from epass.attendees.registry import (
    attendee_summary,
    digits_only,
    find_by_registration_id,
    validate_registration_id,
)
from epass.core.config import settings
from epass.core.database import with_retries
from epass.core.errors import (
    Conflict,
    NotFound,
    ValidationError,
    is_connection_error,
    raise_for_database_error,
)
from epass.models import Attendee

logger = logging.getLogger(__name__)

SEARCH_FILTERS = ("all", "checked_in", "not_checked_in")
DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


class StatsCache:
    """Short-lived stats cache that remembers its last value after expiry."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value: dict | None = None
        self._stored_at = 0.0

    def fresh(self) -> dict | None:
        if self._value is None or self.clock() - self._stored_at >= self.ttl_seconds:
            return None
        return dict(self._value)

    def last(self) -> dict | None:
        return dict(self._value) if self._value is not None else None

    def set(self, value: dict) -> None:
        self._value = dict(value)
        self._stored_at = self.clock()

    def invalidate(self) -> None:
        self._value = None
        self._stored_at = 0.0


stats_cache = StatsCache(settings.stats_cache_ttl_seconds)


def count_stats(session: Session) -> dict:
    total = session.exec(select(func.count()).select_from(Attendee)).one()
    checked_in = session.exec(
        select(func.count()).select_from(Attendee).where(Attendee.status == "checked_in")
    ).one()
    return {"totalAttendees": int(total or 0), "checkedInCount": int(checked_in or 0)}


def get_stats(session: Session, cache: StatsCache | None = None) -> dict:
    """
    Return ``{totalAttendees, checkedInCount}``.

    Served from cache while fresh. If the database is unreachable and a
    previous value exists, that value is returned with ``stale: true``.
    """
    cache = cache or stats_cache
    cached = cache.fresh()
    if cached is not None:
        return cached

    try:
        stats = with_retries(lambda: count_stats(session), on_retry=session.rollback)
    except Exception as e:
        session.rollback()
        previous = cache.last()
        if previous is not None and is_connection_error(e):
            logger.warning(f"Returning stale cached stats after database error: {e}")
            return {**previous, "stale": True}
        raise_for_database_error(e, "stats")

    cache.set(stats)
    return stats


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_attendees(
    session: Session,
    q: str | None = None,
    status_filter: str = "all",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """Case-insensitive search over name, e-mail, phone and registration ID."""
    if status_filter not in SEARCH_FILTERS:
        raise ValidationError(f"Invalid filter. Expected one of: {', '.join(SEARCH_FILTERS)}.")
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    conditions = []
    term = (q or "").strip()
    if term:
        pattern = f"%{escape_like(term)}%"
        conditions.append(or_(
            col(Attendee.full_name).ilike(pattern, escape="\\"),
            col(Attendee.email).ilike(pattern, escape="\\"),
            col(Attendee.phone).ilike(pattern, escape="\\"),
            col(Attendee.registration_id).ilike(pattern, escape="\\"),
        ))
    if status_filter == "checked_in":
        conditions.append(Attendee.status == "checked_in")
    elif status_filter == "not_checked_in":
        conditions.append(Attendee.status != "checked_in")

    def run() -> tuple[list[Attendee], int]:
        total = session.exec(
            select(func.count()).select_from(Attendee).where(*conditions)
        ).one()
        rows = session.exec(
            select(Attendee)
            .where(*conditions)
            .order_by(col(Attendee.created_at).desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(rows), int(total or 0)

    try:
        attendees, total = with_retries(run, on_retry=session.rollback)
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, "attendee search")

    return {
        "attendees": [attendee_summary(a) for a in attendees],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
    }


def clean_updates(fields: dict) -> dict:
    """Pick and validate the editable attendee fields."""
    updates = {}
    full_name = fields.get("full_name", fields.get("fullName"))
    if full_name is not None:
        full_name = str(full_name).strip()
        if not full_name:
            raise ValidationError("Name cannot be empty.")
        updates["full_name"] = full_name

    email = fields.get("email")
    if email is not None:
        email = str(email).strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Email address is invalid.")
        updates["email"] = email

    phone = fields.get("phone", fields.get("phone_number"))
    if phone is not None:
        phone = digits_only(phone)
        if len(phone) != PHONE_LENGTH:
            raise ValidationError("Phone number must be 10 digits.")
        updates["phone"] = phone

    if not updates:
        raise ValidationError("No updatable fields provided.")
    return updates


def update_attendee(session: Session, registration_id, fields: dict) -> Attendee:
    """Edit name, e-mail or phone of an attendee."""
    rid = validate_registration_id(registration_id)
    updates = clean_updates(fields)

    try:
        attendee = find_by_registration_id(session, rid)
        if attendee is None:
            raise NotFound("Attendee not found.")

        if "phone" in updates and updates["phone"] != attendee.phone:
            taken = session.exec(
                select(Attendee).where(
                    Attendee.phone == updates["phone"], Attendee.id != attendee.id
                )
            ).first()
            if taken is not None:
                raise Conflict(DUPLICATE_PHONE_MESSAGE)

        for key, value in updates.items():
            setattr(attendee, key, value)
        attendee.updated_at = datetime.now(UTC)
        session.add(attendee)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise Conflict(DUPLICATE_PHONE_MESSAGE) from e
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, f"update of {rid}")

    session.refresh(attendee)
    logger.info(f"Updated {rid}: {', '.join(sorted(updates))}")
    return attendee


def delete_attendee(session: Session, registration_id, cache: StatsCache | None = None) -> None:
    """Delete an attendee together with their check-in rows."""
    rid = validate_registration_id(registration_id)
    cache = cache or stats_cache

    try:
        attendee = find_by_registration_id(session, rid)
        if attendee is None:
            raise NotFound("Attendee not found.")
        session.delete(attendee)
        session.commit()
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, f"delete of {rid}")

    cache.invalidate()
    logger.info(f"Deleted {rid}")
