"""Shared test fixtures."""

from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from epass.attendees.admin import stats_cache
from epass.attendees.status import settings_cache
from epass.core.config import Settings, get_settings
from epass.core.database import get_session, seed_system_settings
from epass.core.errors import UpstreamUnavailable
from epass.core.ratelimit import find_pass_limiter
from epass.integrations.images import UploadedImage, get_image_host
from epass.integrations.sheets import SheetsExporter, get_sheets_exporter
from epass.main import app
from epass.models import Attendee

STAFF_PASSWORD = "gate-password"
TOKEN_SECRET = "test-token-secret-that-is-long-enough-for-hs256"


class FakeImageHost:
    """Records uploads instead of calling Cloudinary."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[str, str]] = []

    def upload(self, image: str, public_id: str) -> UploadedImage:
        if self.fail:
            raise UpstreamUnavailable("Unable to process profile image.")
        self.uploads.append((image, public_id))
        return UploadedImage(
            url=f"https://res.example.com/profiles/{public_id}.jpg",
            public_id=f"digital-pass/profiles/{public_id}",
        )

    def ping(self) -> bool:
        if self.fail:
            raise ConnectionError("cloudinary unreachable")
        return True


class FakeRequest:
    def __init__(self, calls: list, name: str, kwargs: dict):
        self.calls = calls
        self.name = name
        self.kwargs = kwargs

    def execute(self, num_retries: int = 0):
        self.calls.append((self.name, self.kwargs))
        return {}


class FakeValues:
    def __init__(self, calls: list):
        self.calls = calls

    def clear(self, **kwargs):
        return FakeRequest(self.calls, "clear", kwargs)

    def batchUpdate(self, **kwargs):
        return FakeRequest(self.calls, "batchUpdate", kwargs)


class FakeSpreadsheets:
    def __init__(self, calls: list):
        self.calls = calls

    def values(self):
        return FakeValues(self.calls)

    def get(self, **kwargs):
        return FakeRequest(self.calls, "get", kwargs)


class FakeSheetsService:
    """Minimal stand-in for the Sheets v4 discovery client."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def spreadsheets(self):
        return FakeSpreadsheets(self.calls)


@pytest.fixture(autouse=True)
def reset_caches():
    """Start every test with empty read caches and rate limits."""
    settings_cache.invalidate()
    stats_cache.invalidate()
    find_pass_limiter.reset()
    yield
    settings_cache.invalidate()
    stats_cache.invalidate()
    find_pass_limiter.reset()


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        seed_system_settings(session)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="test_settings")
def test_settings_fixture() -> Settings:
    return Settings(
        _env_file=None,
        staff_login_password=STAFF_PASSWORD,
        staff_token_secret=TOKEN_SECRET,
        registration_prefix="UP25",
    )


@pytest.fixture(name="image_host")
def image_host_fixture() -> FakeImageHost:
    return FakeImageHost()


@pytest.fixture(name="sheets_service")
def sheets_service_fixture() -> FakeSheetsService:
    return FakeSheetsService()


@pytest.fixture(name="client")
def client_fixture(
    session: Session,
    test_settings: Settings,
    image_host: FakeImageHost,
    sheets_service: FakeSheetsService,
):
    """Create a test client with the test database session and fake collaborators."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_image_host] = lambda: image_host
    app.dependency_overrides[get_sheets_exporter] = lambda: SheetsExporter(
        sheets_service, "sheet-123", "Registrations"
    )
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="staff_headers")
def staff_headers_fixture() -> dict:
    """Authorization header using the legacy staff password."""
    return {"Authorization": f"Bearer {STAFF_PASSWORD}"}


@pytest.fixture(name="sample_attendee")
def sample_attendee_fixture(session: Session) -> Attendee:
    """Create a registered attendee with an issued e-pass."""
    now = datetime.now(UTC)
    attendee = Attendee(
        registration_id="UP25-ABCD1234",
        full_name="Asha Verma",
        phone="9876543210",
        email="asha@example.com",
        city="Lucknow",
        state="Uttar Pradesh",
        status="epass_issued",
        last_qr_requested_at=now,
    )
    session.add(attendee)
    session.commit()
    session.refresh(attendee)
    return attendee


@pytest.fixture(name="checked_in_attendee")
def checked_in_attendee_fixture(session: Session) -> Attendee:
    """Create an attendee who has already been admitted."""
    attendee = Attendee(
        registration_id="UP25-DONE0001",
        full_name="Ravi Kumar",
        phone="9123456780",
        email="ravi@example.com",
        city="Kanpur",
        state="Uttar Pradesh",
        status="checked_in",
    )
    session.add(attendee)
    session.commit()
    session.refresh(attendee)
    return attendee
