"""Reachability checks for the services the app depends on."""
import logging

from sqlalchemy import text
from sqlmodel import Session

from epass.integrations.images import CloudinaryImageHost
from epass.integrations.sheets import SheetsExporter

logger = logging.getLogger(__name__)


def service_result(status: str, message: str) -> dict:
    return {"status": status, "message": message}


def check_database(session: Session) -> dict:
    try:
        session.connection().execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database check failed: {e}")
        try:
            session.rollback()
        except Exception as rollback_error:
            logger.debug(f"Rollback after database check also failed: {rollback_error}")
        return service_result("error", "Connection Failed")
    return service_result("ok", "Connected")


def check_image_host(image_host: CloudinaryImageHost | None) -> dict:
    if image_host is None:
        return service_result("disabled", "Not configured")
    try:
        healthy = image_host.ping()
    except Exception as e:
        logger.error(f"Cloudinary check failed: {e}")
        return service_result("error", "Ping Failed")
    if not healthy:
        return service_result("error", "API Not Ok")
    return service_result("ok", "Operational")


def check_sheets(exporter: SheetsExporter | None) -> dict:
    if exporter is None:
        return service_result("disabled", "Not configured")
    try:
        exporter.ping()
    except Exception as e:
        logger.error(f"Google Sheets check failed: {e}")
        return service_result("error", "Connection Failed")
    return service_result("ok", "Connected")


def service_status(
    session: Session,
    image_host: CloudinaryImageHost | None,
    exporter: SheetsExporter | None,
) -> dict:
    """
    Check the database, Cloudinary and Google Sheets.

    Each entry is ``{status, message}`` where status is "ok", "error" or
    "disabled" (not configured). A failing service never fails the others.
    """
    return {
        "database": check_database(session),
        "cloudinary": check_image_host(image_host),
        "googleSheets": check_sheets(exporter),
    }
