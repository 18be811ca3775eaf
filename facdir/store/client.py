"""HTTP client for the hosted relational store (PostgREST / Supabase REST)."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

import requests

from facdir.errors import DirectoryError, error_from_exception, error_from_response
from facdir.store.query import Query, Request, StoreResponse

logger = logging.getLogger("facdir")

_CONTENT_RANGE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


class StoreClient:
    """Execute :class:`~facdir.store.query.Query` objects over HTTP.

    The client is constructed explicitly and handed to the data access
    layer; nothing in the package reaches for a global connection.  It never
    retries: every failure is classified into a
    :class:`~facdir.errors.DirectoryError` and raised to the caller.

    Usage::

        with StoreClient("https://abc.supabase.co", api_key="...") as store:
            rows = store.table("departments").select().order("department_name").execute().data
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        schema: str = "public",
        timeout: float | tuple[float, float] | None = None,
        session: requests.Session | None = None,
        tables: Mapping[str, str] | None = None,
    ) -> None:
        if not url:
            raise ValueError("Store URL is required")
        if not api_key:
            raise ValueError("Store API key is required")

        self.url = url.rstrip("/")
        self.rest_url = f"{self.url}/rest/v1"
        self.schema = schema
        self.timeout = timeout
        self.tables = dict(tables or {})

        self._session = session or requests.Session()
        self._session.headers["apikey"] = api_key
        self._session.headers["Authorization"] = f"Bearer {access_token or api_key}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def table(self, name: str) -> Query:
        """Start a query against table *name*.

        *name* is looked up in :attr:`tables` first, so a deployment whose
        remote tables are named differently can be mapped onto the
        directory schema.
        """
        return Query(self, self.tables.get(name, name))

    def execute(self, query: Query) -> StoreResponse:
        """Send *query* and decode the response.

        Raises:
            DirectoryError: a typed failure for any transport error or
                non-2xx response.
        """
        request = query.to_request()
        response = self._send(request, table=query.table)

        data: Any = None
        if request.method != "HEAD" and response.content:
            data = response.json()
        return StoreResponse(
            data=data,
            count=parse_content_range(response.headers.get("Content-Range")),
            status=response.status_code,
        )

    def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Call a stored function and return its decoded result."""
        request = Request(method="POST", path=f"rpc/{function}", json=params or {})
        response = self._send(request, table=f"rpc/{function}")
        return response.json() if response.content else None

    def close(self) -> None:
        """Close the underlying :class:`requests.Session`."""
        self._session.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _send(self, request: Request, table: str) -> requests.Response:
        headers = dict(request.headers)
        if request.method in ("GET", "HEAD"):
            headers["Accept-Profile"] = self.schema
        else:
            headers["Content-Profile"] = self.schema

        logger.debug(
            "Store request",
            extra={"method": request.method, "table": table, "params": request.params},
        )
        try:
            response = self._session.request(
                request.method,
                f"{self.rest_url}/{request.path}",
                params=request.params,
                headers=headers,
                json=request.json,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error(
                "Store request failed",
                extra={"method": request.method, "table": table, "error": str(exc)},
            )
            raise error_from_exception(exc) from exc

        if not response.ok:
            error: DirectoryError = error_from_response(response)
            logger.info(
                "Store returned an error",
                extra={
                    "method": request.method,
                    "table": table,
                    "status": response.status_code,
                    "code": error.code,
                    "error": error.message,
                },
            )
            raise error
        return response

    # ------------------------------------------------------------------
    # Context-manager protocol
    # ------------------------------------------------------------------

    def __enter__(self) -> StoreClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def parse_content_range(value: str | None) -> int | None:
    """Return the total from a ``Content-Range`` header such as ``0-9/42``."""
    if not value:
        return None
    match = _CONTENT_RANGE.match(value.strip())
    if not match or match.group(1) == "*":
        return None
    return int(match.group(1))
