"""Database engine, session management and schema initialisation.

The schema is fixed: it is whatever the SQLModel table models in
``epass.models`` declare. Creating it and seeding the system settings is an
explicit step (``init_schema``), run once by ``scripts/init_db.py`` or by the
application lifespan, never per request.

Engine configuration:
    - **SQLite** (local development, tests): ``check_same_thread=False`` so
      FastAPI can hand a connection to its worker threads, plus WAL and
      foreign keys switched on per connection.
    - **Postgres** (production): ``pool_pre_ping`` so stale pooled
      connections are replaced, and a per-connection ``statement_timeout`` so
      a slow query fails the request instead of hanging it.
"""
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from epass.core.config import Settings, settings
from epass.core.errors import is_connection_error
from epass.models import SystemSetting

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

DEFAULT_SYSTEM_SETTINGS = {
    "registration_open": "true",
    "maintenance_mode": "false",
}

T = TypeVar("T")

READ_ATTEMPTS = 3
READ_WAIT = wait_exponential_jitter(initial=0.15, max=2, jitter=0.1)


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(config: Settings) -> Engine:
    """Create the engine for ``config.database_url``."""
    url = config.database_url
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=config.debug,
        )
        sa_event.listen(engine, "connect", _set_sqlite_pragma)
        return engine

    return create_engine(
        url,
        echo=config.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=5,
        connect_args={
            "connect_timeout": 5,
            "options": f"-c statement_timeout={config.db_statement_timeout_ms}",
        },
    )


engine = build_engine(settings)


def seed_system_settings(session: Session) -> int:
    """Insert any missing default system settings. Returns how many were added."""
    existing = set(session.exec(select(SystemSetting.key)).all())
    added = 0
    for key, value in DEFAULT_SYSTEM_SETTINGS.items():
        if key in existing:
            continue
        session.add(SystemSetting(key=key, value=value, updated_at=datetime.now(UTC)))
        added += 1
    session.commit()
    return added


def init_schema(target: Engine | None = None) -> None:
    """Create all tables and seed default settings."""
    target = target or engine
    SQLModel.metadata.create_all(target)
    with Session(target) as session:
        added = seed_system_settings(session)
    logger.info(f"Schema v{SCHEMA_VERSION} ready ({added} default settings seeded)")


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session


def _log_retry(attempts: int, on_retry: Callable[[], None] | None):
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            f"Transient database error (attempt {retry_state.attempt_number}/{attempts}), "
            f"retrying in {retry_state.next_action.sleep:.2f}s: {retry_state.outcome.exception()}"
        )
        if on_retry is not None:
            on_retry()

    return before_sleep


def with_retries(
    fn: Callable[[], T],
    attempts: int = READ_ATTEMPTS,
    wait: wait_base | None = None,
    sleep: Callable[[float], None] | None = None,
    on_retry: Callable[[], None] | None = None,
) -> T:
    """Run ``fn``, retrying connection-level failures with exponential backoff.

    Only read paths use this. Any other exception is raised immediately, and
    the last connection error is re-raised once ``attempts`` run out.
    ``on_retry`` runs before each new attempt (e.g. ``session.rollback``).
    """
    options = {"sleep": sleep} if sleep is not None else {}
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait if wait is not None else READ_WAIT,
        retry=retry_if_exception(is_connection_error),
        before_sleep=_log_retry(attempts, on_retry),
        reraise=True,
        **options,
    )
    return retrying(fn)
