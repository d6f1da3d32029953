import logging
import re
from functools import lru_cache
from typing import Generator, Optional
from urllib.parse import unquote

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core import security
from app.db.session import SessionLocal
from app.services.url_verifier import UrlVerifier

log = logging.getLogger(__name__)


def _resolve_request(request: Request = None) -> Optional[Request]:  # type: ignore[assignment]
    return request


def get_db(request: Optional[Request] = Depends(_resolve_request)) -> Generator[Session, None, None]:
    """Provide one SQLAlchemy session shared by every dependency of a request.

    ``require_admin`` and the route handler both depend on ``get_db``; the
    session is cached on ``request.state`` with a reference counter so it is
    closed only when the last dependency exits. Scripts calling ``get_db``
    without a request get a private session.
    """

    if request is None:
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()
        return

    state = request.state
    db = getattr(state, "_db_session", None)
    if db is None:
        db = SessionLocal()
        state._db_session = db
        state._db_refcount = 0
    state._db_refcount = getattr(state, "_db_refcount", 0) + 1

    try:
        yield db
    finally:
        state._db_refcount -= 1
        if state._db_refcount <= 0:
            try:
                db.close()
            finally:
                del state._db_session
                del state._db_refcount


@lru_cache
def get_url_verifier() -> UrlVerifier:
    """Process-wide verifier built from settings (shares one HTTP session)."""
    return UrlVerifier.from_settings()


def _normalize_token_value(raw_token: str | None) -> str | None:
    """Return a clean JWT extracted from a header or cookie value.

    Accepts case-insensitive ``Bearer`` prefixes, quoted strings and
    percent-encoded values (``Bearer%20...``).
    """

    if raw_token is None:
        return None

    token = unquote(raw_token.strip().strip('"').strip("'"))
    if not token:
        return None

    match = re.match(r"^(bearer|token)[\s,:]+(.+)$", token, flags=re.IGNORECASE)
    if match:
        token = match.group(2)

    token = token.strip()
    return token or None


def _token_claims(request: Request, *candidates: Optional[str]) -> dict:
    token = next((t for t in map(_normalize_token_value, candidates) if t), None)
    if token is None:
        log.warning("Access denied on %s: no token provided.", request.scope.get("path"))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="not_authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = security.decode_access_token(token)
    if not claims or not claims.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def require_user(request: Request) -> str:
    """Return the subject of any valid access token (learner or admin)."""

    claims = _token_claims(
        request,
        request.headers.get("Authorization"),
        request.headers.get("X-Access-Token"),
    )
    return claims["sub"]


def require_admin(request: Request) -> str:
    """Reject the request unless it carries a valid admin token.

    Returns the admin username (the token subject).
    """

    claims = _token_claims(
        request,
        request.headers.get("Authorization"),
        request.headers.get("X-Access-Token"),
        request.cookies.get("admin_token"),
    )
    if claims.get("role") != security.ADMIN_ROLE:
        log.warning("Admin access denied for %s: missing admin role.", claims.get("sub"))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_required")

    return claims["sub"]
