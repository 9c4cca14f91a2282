"""Attendee model for registered event visitors.

This module defines the Attendee model which represents one person who
registered for the event and was issued an e-pass. The human-readable
registration ID printed on the pass is distinct from the internal row ID.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from epass.models.checkin import Checkin

ATTENDEE_STATUSES = ("registered", "epass_issued", "checked_in", "revoked")


class Attendee(SQLModel, table=True):
    """A registered event visitor.

    Registration ID and phone number are each globally unique. Status moves
    registered -> epass_issued -> checked_in in practice, but nothing
    enforces the order; ``status`` is the source of truth for whether the
    attendee has been admitted.

    Attributes:
        id: Internal identifier (UUID), never shown to visitors.
        registration_id: Pass identifier, upper-case ``[A-Z0-9-_]+``.
        full_name: Name printed on the pass.
        phone: Exactly 10 digits.
        email: Stored lower-case.
        city: Visitor's city or district.
        state: Visitor's state or province.
        profile_url: Hosted profile image URL, if one was uploaded.
        profile_public_id: Image host identifier for ``profile_url``.
        status: One of "registered", "epass_issued", "checked_in", "revoked".
        last_qr_requested_at: When the pass was last issued or looked up.
        created_at: Row creation time.
        updated_at: Last modification time.
        checkins: Check-in audit rows for this attendee.
    """
    __tablename__ = "attendees"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    registration_id: str = Field(index=True, unique=True, max_length=64)
    full_name: str
    phone: str = Field(index=True, unique=True, max_length=10)
    email: str = Field(index=True)
    city: str
    state: str
    profile_url: str | None = None
    profile_public_id: str | None = None
    status: str = Field(default="registered")
    last_qr_requested_at: datetime | None = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), sa_type=DateTime(timezone=True)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), sa_type=DateTime(timezone=True)
    )

    # Relationship
    checkins: list["Checkin"] = Relationship(
        back_populates="attendee",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def is_checked_in(self) -> bool:
        return (self.status or "").lower() == "checked_in"
