"""HTTP client used to fetch directory pages for scraping."""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("facdir")

DEFAULT_USER_AGENT = "facdir/0.1.0"


class HttpClient:
    """Thin wrapper around :class:`requests.Session` with a fixed
    ``User-Agent``, default timeouts and automatic retries of GETs that
    hit a transient server error.

    This is for fetching web pages only; the store client never retries.

    Usage::

        with HttpClient(user_agent="facdir/0.1.0") as client:
            html = client.fetch_html("https://college.edu/faculty")
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: tuple[int, int] = (10, 30),
        max_retries: int = 3,
    ) -> None:
        self.timeout = timeout

        self._session = requests.Session()
        self._session.headers["User-Agent"] = user_agent

        retry = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "HEAD"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> HttpClient:
        """Build a client from the ``scraper`` config section."""
        section = config.get("scraper") or {}
        timeouts = section.get("timeouts") or {}
        return cls(
            user_agent=section.get("user_agent") or DEFAULT_USER_AGENT,
            timeout=(timeouts.get("connect", 10), timeouts.get("read", 30)),
            max_retries=section.get("retries", 3),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Perform a GET request.

        Raises :class:`requests.HTTPError` on 4xx/5xx responses (after
        retries are exhausted for 5xx).
        """
        kwargs.setdefault("timeout", self.timeout)
        logger.debug("Fetching page", extra={"url": url})
        response = self._session.get(url, **kwargs)
        response.raise_for_status()
        return response

    def fetch_html(self, url: str, **kwargs: Any) -> str:
        """GET *url* and return the decoded body."""
        return self.get(url, **kwargs).text

    def close(self) -> None:
        """Close the underlying :class:`requests.Session`."""
        self._session.close()

    # ------------------------------------------------------------------
    # Context-manager protocol
    # ------------------------------------------------------------------

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
