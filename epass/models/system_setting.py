"""Key/value switches read by the public status gate."""

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

SYSTEM_SETTING_KEYS = ("registration_open", "maintenance_mode")


class SystemSetting(SQLModel, table=True):
    """A boolean switch stored as the string "true" or "false".

    Seeded by ``init_schema`` and changed through the admin system-status
    endpoint.
    """
    __tablename__ = "system_settings"

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), sa_type=DateTime(timezone=True)
    )
