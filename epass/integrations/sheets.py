"""Google Sheets export of the attendee list.

Each export is a full refresh: the data rows below the header are cleared,
then the whole snapshot is written back in ranges of ``CHUNK_SIZE`` rows,
sent ``BATCH_LIMIT`` ranges per ``values.batchUpdate`` call.
"""
import json
import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy import func
from sqlmodel import Session, col, select

from epass.core.config import settings
from epass.core.errors import UpstreamUnavailable
from epass.models import Attendee, Checkin

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

CHUNK_SIZE = 400
BATCH_LIMIT = 100
FIRST_DATA_ROW = 2
LAST_COLUMN = "J"
API_RETRIES = 3


def quote_sheet_name(name: str) -> str:
    """Quote a sheet name for A1 notation, doubling embedded quotes."""
    return "'" + name.replace("'", "''") + "'"


def format_timestamp(value: datetime | None, timezone: str) -> str:
    if value is None:
        return "N/A"
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(ZoneInfo(timezone)).strftime("%d/%m/%Y, %H:%M:%S")


class SheetsExporter:
    """Writes attendee snapshots to one sheet of a spreadsheet."""

    def __init__(self, service, spreadsheet_id: str, sheet_name: str):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = quote_sheet_name(sheet_name)

    def build_requests(self, rows: list[list]) -> list[dict]:
        requests = []
        for offset in range(0, len(rows), CHUNK_SIZE):
            chunk = rows[offset:offset + CHUNK_SIZE]
            start_row = FIRST_DATA_ROW + offset
            end_row = start_row + len(chunk) - 1
            requests.append({
                "range": f"{self.sheet_name}!A{start_row}:{LAST_COLUMN}{end_row}",
                "values": chunk,
            })
        return requests

    def export(self, rows: list[list]) -> dict:
        """
        Replace the sheet's data rows with ``rows``.

        Header row 1 is preserved. Returns counts of rows written and
        batchUpdate calls made. Google API failures raise UpstreamUnavailable.
        """
        values = self.service.spreadsheets().values()
        data_range = f"{self.sheet_name}!A{FIRST_DATA_ROW}:{LAST_COLUMN}"
        batches = 0

        try:
            values.clear(spreadsheetId=self.spreadsheet_id, range=data_range).execute(
                num_retries=API_RETRIES
            )
            logger.info(f"Cleared {data_range} (headers preserved)")

            requests = self.build_requests(rows)
            for offset in range(0, len(requests), BATCH_LIMIT):
                batch = requests[offset:offset + BATCH_LIMIT]
                values.batchUpdate(
                    spreadsheetId=self.spreadsheet_id,
                    body={"valueInputOption": "USER_ENTERED", "data": batch},
                ).execute(num_retries=API_RETRIES)
                batches += 1
                logger.info(f"Wrote ranges {batch[0]['range']} ... {batch[-1]['range']}")
        except HttpError as e:
            logger.error(f"Google Sheets export failed: {e}")
            raise UpstreamUnavailable("Google Sheets is unavailable. Please try again.") from e

        logger.info(f"Exported {len(rows)} rows to Google Sheets in {batches} batches")
        return {"rows": len(rows), "batches": batches}

    def ping(self) -> None:
        """Fetch the spreadsheet id only, to check credentials and connectivity."""
        self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id, fields="spreadsheetId"
        ).execute(num_retries=API_RETRIES)


def snapshot_rows(session: Session, timezone: str | None = None) -> list[list]:
    """Build one sheet row per attendee, oldest registration first."""
    timezone = timezone or settings.export_timezone
    checked_in = (
        select(Checkin.attendee_id, func.max(Checkin.created_at).label("checked_in_at"))
        .group_by(Checkin.attendee_id)
        .subquery()
    )
    statement = (
        select(Attendee, checked_in.c.checked_in_at)
        .outerjoin(checked_in, checked_in.c.attendee_id == Attendee.id)
        .order_by(col(Attendee.created_at))
    )

    rows = []
    for attendee, checked_in_at in session.exec(statement).all():
        rows.append([
            attendee.registration_id,
            attendee.full_name,
            attendee.phone,
            attendee.email,
            attendee.city,
            attendee.state,
            attendee.status,
            format_timestamp(attendee.created_at, timezone),
            attendee.profile_url or "",
            format_timestamp(checked_in_at, timezone),
        ])
    return rows


def export_attendees(session: Session, exporter: SheetsExporter) -> dict:
    """Push the current attendee list to the spreadsheet."""
    rows = snapshot_rows(session)
    logger.info(f"Loaded {len(rows)} attendees to export")
    return exporter.export(rows)


# Cached service
_service = None


def get_sheets_service():
    """Build the Sheets v4 service from the service-account JSON in settings."""
    global _service

    if _service is None:
        info = json.loads(settings.google_credentials)
        creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        _service = build("sheets", "v4", credentials=creds, cache_discovery=False)
    return _service


def get_sheets_exporter() -> SheetsExporter | None:
    """Dependency returning the exporter, or None when Sheets is not configured."""
    if not settings.sheets_configured:
        return None
    return SheetsExporter(
        get_sheets_service(),
        settings.google_sheet_id,
        settings.google_sheet_name,
    )
