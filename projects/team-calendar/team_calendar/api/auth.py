"""Request identity for the calendar API.

Callers are identified by the email in a Google ID token. For local
development and tests, TCAL_DEV_AUTH_BYPASS=1 trusts the X-User-Email header
instead. TCAL_ALLOWED_EMAILS optionally restricts who may use the service.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache

from fastapi import Header, HTTPException, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

logger = logging.getLogger(__name__)

DEV_BYPASS_ENV = "TCAL_DEV_AUTH_BYPASS"
CLIENT_ID_ENV = "GOOGLE_OAUTH_CLIENT_ID"
ALLOWED_AUDIENCE_ENV = "GOOGLE_OAUTH_AUDIENCE"
ALLOWED_EMAILS_ENV = "TCAL_ALLOWED_EMAILS"


class AuthError(HTTPException):
    def __init__(self, detail: str, code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(status_code=code, detail=detail)


@lru_cache
def _audiences() -> tuple[str, ...]:
    raw = os.getenv(ALLOWED_AUDIENCE_ENV) or os.getenv(CLIENT_ID_ENV) or ""
    return tuple(aud.strip() for aud in raw.split(",") if aud.strip())


@lru_cache
def _allowed_emails() -> frozenset[str]:
    raw = os.getenv(ALLOWED_EMAILS_ENV, "")
    return frozenset(e.strip().lower() for e in raw.split(",") if e.strip())


def _check_allowed(email: str) -> str:
    allowed = _allowed_emails()
    if allowed and email.strip().lower() not in allowed:
        logger.warning(f"Rejected calendar access for {email}")
        raise AuthError(f"{email} is not allowed to use this calendar.", status.HTTP_403_FORBIDDEN)
    return email


def _email_from_token(token: str) -> str:
    """Verify a Google ID token against each configured audience."""
    audiences = _audiences()
    if not audiences:
        raise AuthError("Server missing GOOGLE_OAUTH_CLIENT_ID or audience config.")

    request = google_requests.Request()
    last_error: ValueError | None = None
    for audience in audiences:
        try:
            claims = id_token.verify_oauth2_token(token, request, audience)
        except ValueError as exc:
            last_error = exc
            continue
        email = claims.get("email")
        if not email:
            raise AuthError("Token missing email claim.")
        return email

    raise AuthError(f"Invalid token: {last_error}")


def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    dev_user: str | None = Header(default=None, alias="X-User-Email"),
) -> str:
    """FastAPI dependency returning the caller's email."""
    if os.getenv(DEV_BYPASS_ENV) == "1":
        if not dev_user:
            raise AuthError("Auth bypass enabled but X-User-Email header missing (dev only).")
        return _check_allowed(dev_user)

    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthError("Missing Bearer token.")
    return _check_allowed(_email_from_token(token.strip()))
