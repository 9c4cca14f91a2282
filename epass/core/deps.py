"""FastAPI dependencies shared by the routers."""
import logging

from fastapi import Depends, Header, Request

from epass.core.config import Settings, get_settings
from epass.core.errors import PayloadTooLarge, Unauthorized
from epass.core.security import authorize_bearer

logger = logging.getLogger(__name__)


def require_staff(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries a staff token or the staff password."""
    if not authorize_bearer(
        authorization,
        settings.staff_login_password,
        settings.staff_token_secret,
    ):
        raise Unauthorized()


async def limit_scan_payload(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject verify and check-in bodies larger than ``max_scan_payload_bytes`` with 413."""
    limit = settings.max_scan_payload_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        logger.warning(f"{request.url.path}: payload of {declared} bytes exceeds {limit}")
        raise PayloadTooLarge()

    body = await request.body()
    if len(body) > limit:
        logger.warning(f"{request.url.path}: payload of {len(body)} bytes exceeds {limit}")
        raise PayloadTooLarge()
