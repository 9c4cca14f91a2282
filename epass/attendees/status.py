"""Registration and maintenance switches.

The public page must always get a decidable answer, so ``get_public_status``
never raises: a missing switch or an unreachable database reads as
"registration closed, maintenance on". The registration gate and the admin
view report the failure instead.
"""
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from sqlmodel import Session, col, select

from epass.core.config import settings
from epass.core.errors import (
    UpstreamUnavailable,
    ValidationError,
    is_connection_error,
    raise_for_database_error,
)
from epass.models import SYSTEM_SETTING_KEYS, SystemSetting

logger = logging.getLogger(__name__)

FAIL_CLOSED = {"registrationEnabled": False, "maintenanceMode": True}


class SettingsCache:
    """Time-bounded copy of the public status.

    A stale read for a few seconds is acceptable; writes call ``invalidate``.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value: dict | None = None
        self._expires_at = 0.0

    def get(self) -> dict | None:
        if self._value is None or self.clock() >= self._expires_at:
            return None
        return dict(self._value)

    def set(self, value: dict) -> None:
        self._value = dict(value)
        self._expires_at = self.clock() + self.ttl_seconds

    def invalidate(self) -> None:
        self._value = None
        self._expires_at = 0.0


settings_cache = SettingsCache(settings.settings_cache_ttl_seconds)


def parse_flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() == "true"


def read_status(session: Session) -> dict:
    """Read both switches, defaulting missing keys to the closed posture."""
    statement = select(SystemSetting).where(col(SystemSetting.key).in_(SYSTEM_SETTING_KEYS))
    values = {row.key: row.value for row in session.exec(statement).all()}
    return {
        "registrationEnabled": parse_flag(values.get("registration_open"), default=False),
        "maintenanceMode": parse_flag(values.get("maintenance_mode"), default=True),
    }


def get_public_status(session: Session, cache: SettingsCache | None = None) -> dict:
    """Return ``{registrationEnabled, maintenanceMode}``. Never raises."""
    cache = cache or settings_cache
    cached = cache.get()
    if cached is not None:
        return cached

    try:
        status = read_status(session)
    except Exception as e:
        logger.error(f"Could not read system status, failing closed: {e}")
        try:
            session.rollback()
        except Exception as rollback_error:
            logger.debug(f"Rollback after status read failure also failed: {rollback_error}")
        return dict(FAIL_CLOSED)

    cache.set(status)
    return status


def registration_allowed(session: Session, cache: SettingsCache | None = None) -> bool:
    """Return whether new registrations are accepted.

    Unlike ``get_public_status`` this raises when the switches cannot be read:
    UpstreamUnavailable if the database is unreachable, InternalError otherwise.
    """
    cache = cache or settings_cache
    status = cache.get()
    if status is None:
        try:
            status = read_status(session)
        except Exception as e:
            session.rollback()
            raise_for_database_error(e, "registration gate read")
        cache.set(status)
    return status["registrationEnabled"] and not status["maintenanceMode"]


def get_system_status(session: Session) -> dict:
    """Admin view of the switches, read fresh, plus ``dbConnected``."""
    try:
        status = read_status(session)
    except Exception as e:
        session.rollback()
        if is_connection_error(e):
            logger.error(f"Database unreachable while reading system status: {e}")
            raise UpstreamUnavailable(
                "Database unreachable. Please try again later.",
                data={"data": {**FAIL_CLOSED, "dbConnected": False}},
            ) from e
        raise_for_database_error(e, "system status read")
    return {**status, "dbConnected": True}


def update_system_status(
    session: Session, key, value, cache: SettingsCache | None = None
) -> dict:
    """Upsert one switch and return the fresh admin status."""
    if key not in SYSTEM_SETTING_KEYS:
        raise ValidationError(
            f"Invalid setting key. Expected one of: {', '.join(SYSTEM_SETTING_KEYS)}."
        )
    if not isinstance(value, bool):
        raise ValidationError("Setting value must be a boolean.")

    cache = cache or settings_cache
    try:
        setting = session.get(SystemSetting, key)
        if setting is None:
            setting = SystemSetting(key=key, value="")
        setting.value = "true" if value else "false"
        setting.updated_at = datetime.now(UTC)
        session.add(setting)
        session.commit()
    except Exception as e:
        session.rollback()
        raise_for_database_error(e, f"update of {key}")
    finally:
        cache.invalidate()

    logger.info(f"System setting {key} set to {setting.value}")
    return get_system_status(session)
