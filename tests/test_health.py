"""Tests for the service reachability checks."""

from sqlmodel import Session

from epass.integrations.health import check_database, check_image_host, check_sheets, service_status
from epass.integrations.sheets import SheetsExporter


class UnhealthyImageHost:
    def ping(self) -> bool:
        return False


class BrokenExporter:
    def ping(self) -> None:
        raise TimeoutError("sheets timed out")


def test_database_ok(session: Session):
    assert check_database(session) == {"status": "ok", "message": "Connected"}


def test_image_host_not_ok():
    """Test a ping that answers without status ok is an error."""
    assert check_image_host(UnhealthyImageHost()) == {"status": "error", "message": "API Not Ok"}


def test_sheets_failure():
    assert check_sheets(BrokenExporter()) == {"status": "error", "message": "Connection Failed"}


def test_service_status_keys(session: Session, image_host, sheets_service):
    """Test all three services are reported."""
    exporter = SheetsExporter(sheets_service, "sheet-123", "Registrations")
    status = service_status(session, image_host, exporter)
    assert set(status) == {"database", "cloudinary", "googleSheets"}
    assert all(entry["status"] == "ok" for entry in status.values())
