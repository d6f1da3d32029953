"""CLI helper to validate required environment variables.

Usage::

    python -m scripts.check_env

It imports :mod:`app.core.config` and reports any validation errors in a
readable format, exiting with status code 1 when something is missing.
"""

from __future__ import annotations

import sys

from pydantic import ValidationError

_SENSITIVE_MARKERS = ("key", "password", "secret")

try:
    from app.core.config import settings
except ValidationError:
    # ``app.core.config`` already printed the detailed error summary.
    print("Environment validation failed - see details above.", file=sys.stderr)
    sys.exit(1)
else:
    print("Environment variables OK.")
    for name, value in settings.model_dump().items():
        if any(marker in name.lower() for marker in _SENSITIVE_MARKERS):
            print(f"- {name}: <hidden>")
        else:
            print(f"- {name}: {value}")
    if not settings.ADMIN_PASSWORD_HASH:
        print("Warning: ADMIN_PASSWORD_HASH is empty, admin login is disabled.", file=sys.stderr)
