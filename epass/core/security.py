"""Staff session tokens.

Tokens are compact HS256 JWTs carrying ``{sub, iat, exp}``. Nothing is
persisted: a token stays valid until it expires. Verification never raises;
any malformed, forged or expired token simply verifies as ``None``.
"""
import hmac
import logging
from datetime import UTC, datetime, timedelta

import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
STAFF_SUBJECT = "staff"


def sign_token(payload: dict, secret: str) -> str:
    """Sign ``payload`` with HMAC-SHA256."""
    if not secret:
        raise ValueError("A token secret is required to sign tokens")
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> dict | None:
    """Return the payload of a valid, unexpired token, else None."""
    if not token or not secret or not isinstance(token, str):
        return None
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected staff token: {e}")
        return None


def issue_staff_token(
    secret: str, ttl_minutes: int, now: datetime | None = None
) -> tuple[str, int]:
    """Create a staff token. Returns (token, lifetime in seconds)."""
    now = now or datetime.now(UTC)
    expires_in = int(ttl_minutes * 60)
    payload = {
        "sub": STAFF_SUBJECT,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return sign_token(payload, secret), expires_in


def extract_bearer(authorization: str | None) -> str:
    """Pull the credential out of an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return ""
    scheme, _, credential = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return credential.strip()


def password_matches(candidate: str, staff_password: str) -> bool:
    if not candidate or not staff_password:
        return False
    return hmac.compare_digest(candidate.encode(), staff_password.encode())


def authorize_bearer(
    authorization: str | None, staff_password: str, token_secret: str
) -> bool:
    """Accept a valid staff token, or the legacy raw staff password."""
    credential = extract_bearer(authorization)
    if not credential:
        return False
    if password_matches(credential, staff_password):
        return True
    payload = verify_token(credential, token_secret)
    return bool(payload) and payload.get("sub") == STAFF_SUBJECT
