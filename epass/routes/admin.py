"""Admin dashboard routes. Every route requires a staff credential."""
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session

from epass.attendees.admin import (
    DEFAULT_PAGE_SIZE,
    delete_attendee,
    get_stats,
    search_attendees,
    update_attendee,
)
from epass.attendees.registry import attendee_view
from epass.attendees.status import get_system_status, update_system_status
from epass.core.database import get_session
from epass.core.deps import require_staff
from epass.core.errors import UpstreamUnavailable, ok
from epass.integrations.health import service_status
from epass.integrations.images import CloudinaryImageHost, get_image_host
from epass.integrations.sheets import SheetsExporter, export_attendees, get_sheets_exporter

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_staff)],
)


class SystemStatusUpdate(BaseModel):
    key: str | None = None
    value: Any = None


class AttendeeUpdate(BaseModel):
    full_name: str | None = None
    fullName: str | None = None
    email: str | None = None
    phone: str | int | None = None


@router.get("/stats")
async def stats(session: Session = Depends(get_session)):
    """Attendee totals, cached for a few seconds."""
    return ok(data=get_stats(session))


@router.get("/system-status")
async def system_status(session: Session = Depends(get_session)):
    return ok(data=get_system_status(session))


@router.get("/service-status")
async def get_service_status(
    session: Session = Depends(get_session),
    image_host: CloudinaryImageHost | None = Depends(get_image_host),
    exporter: SheetsExporter | None = Depends(get_sheets_exporter),
):
    """Reachability of the database, Cloudinary and Google Sheets."""
    return ok(data=service_status(session, image_host, exporter))


@router.post("/system-status")
async def set_system_status(
    payload: SystemStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Turn registration or maintenance mode on or off.

    ``key`` is "registration_open" or "maintenance_mode" and ``value`` must
    be a JSON boolean.
    """
    status = update_system_status(session, payload.key, payload.value)
    return ok("System status updated", status)


@router.get("/attendees")
async def list_attendees(
    q: str = "",
    status_filter: str = Query("all", alias="filter"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    session: Session = Depends(get_session),
):
    """
    Search attendees.

    Matches ``q`` against name, e-mail, phone and registration ID; ``filter``
    is "all", "checked_in" or "not_checked_in". Results are newest first.
    """
    return ok(data=search_attendees(session, q, status_filter, page, limit))


@router.patch("/attendees/{registration_id}")
async def edit_attendee(
    registration_id: str,
    payload: AttendeeUpdate,
    session: Session = Depends(get_session),
):
    """Update an attendee's name, e-mail or phone."""
    attendee = update_attendee(
        session, registration_id, payload.model_dump(exclude_none=True)
    )
    return ok("Attendee updated", {"attendee": attendee_view(session, attendee)})


@router.delete("/attendees/{registration_id}")
async def remove_attendee(
    registration_id: str,
    session: Session = Depends(get_session),
):
    """Delete an attendee and their check-in history."""
    delete_attendee(session, registration_id)
    return ok("Attendee deleted")


@router.post("/export")
async def export(
    session: Session = Depends(get_session),
    exporter: SheetsExporter | None = Depends(get_sheets_exporter),
):
    """Push the full attendee list to Google Sheets."""
    if exporter is None:
        raise UpstreamUnavailable("Google Sheets export is not configured.")
    result = export_attendees(session, exporter)
    return ok(f"Exported {result['rows']} attendees", result)
