"""Check-in model for the admission audit trail.

This module defines the Checkin model which records how and where an
attendee was admitted. The attendee's ``status`` column decides whether they
are checked in; these rows are observability only.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from epass.models.attendee import Attendee

CHECKIN_METHODS = ("qr_scan", "manual_lookup")


class Checkin(SQLModel, table=True):
    """One admission event for an attendee.

    At most one row per (attendee_id, method) is intended. It is guarded by a
    conditional insert rather than a unique constraint, so concurrent
    check-ins of the same pass can occasionally leave a duplicate or no row.

    Attributes:
        id: Unique identifier (UUID).
        attendee_id: Foreign key to the admitted Attendee.
        method: "qr_scan" or "manual_lookup".
        location: Free-text gate or desk name.
        notes: Free text, or JSON-encoded device info.
        created_at: When the check-in was recorded.
        attendee: Reference to the parent Attendee object.
    """
    __tablename__ = "checkins"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    attendee_id: UUID = Field(foreign_key="attendees.id", index=True)
    method: str = Field(default="qr_scan")
    location: str | None = None
    notes: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), sa_type=DateTime(timezone=True)
    )

    # Relationship
    attendee: Optional["Attendee"] = Relationship(back_populates="checkins")
