"""Typed failures surfaced by the data access layer.

The remote store speaks PostgREST: error bodies are JSON objects with
``code``, ``message``, ``details`` and ``hint`` keys.  The helpers at the
bottom of this module map those bodies (and transport exceptions raised by
:mod:`requests`) onto the four failure kinds callers handle.
"""

from __future__ import annotations

from typing import Any

import requests

# PostgREST code for "JSON object requested, multiple (or no) rows returned".
SINGLE_ROW_CODE = "PGRST116"
# Postgres SQLSTATE for unique_violation.
UNIQUE_VIOLATION_CODE = "23505"

GATEWAY_STATUSES = frozenset({502, 503, 504})


class DirectoryError(Exception):
    """Base class for every failure reported by the remote store."""

    kind = "unknown"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r})"


class NotFound(DirectoryError):
    """Zero rows came back where exactly one was expected."""

    kind = "not_found"


class Conflict(DirectoryError):
    """A unique constraint rejected the write (e.g. duplicate faculty email)."""

    kind = "conflict"


class RemoteUnavailable(DirectoryError):
    """The store could not be reached or its gateway gave up."""

    kind = "remote_unavailable"


class Unknown(DirectoryError):
    """Anything else; wraps the remote error message."""

    kind = "unknown"


def error_from_body(body: dict[str, Any], status: int | None = None) -> DirectoryError:
    """Classify a decoded PostgREST error body."""
    code = body.get("code")
    code = str(code) if code is not None else None
    message = body.get("message") or body.get("error") or "Remote store error"
    details = body.get("details")
    hint = body.get("hint")
    fields = {"code": code, "details": details, "hint": hint, "status": status}

    if code == SINGLE_ROW_CODE:
        if details and "0 rows" in str(details):
            return NotFound(message, **fields)
        return Unknown(message, **fields)
    if code == UNIQUE_VIOLATION_CODE or (status == 409 and code is None):
        return Conflict(message, **fields)
    if status in GATEWAY_STATUSES:
        return RemoteUnavailable(message, **fields)
    return Unknown(message, **fields)


def error_from_response(response: requests.Response) -> DirectoryError:
    """Classify a non-2xx HTTP response from the store."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        text = (response.text or "").strip()
        body = {"message": text or f"HTTP {response.status_code}"}
    return error_from_body(body, status=response.status_code)


def error_from_exception(exc: requests.RequestException) -> DirectoryError:
    """Classify a transport-level exception raised by :mod:`requests`."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return RemoteUnavailable(str(exc) or type(exc).__name__)
    return Unknown(str(exc) or type(exc).__name__)
