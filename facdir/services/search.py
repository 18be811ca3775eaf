"""Sequenced search that drops superseded responses."""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class LatestSearch(Generic[T]):
    """Wrap a search function so only the newest call's results are kept.

    Searches are not cancelable, so when a user types quickly an older,
    slower response can arrive after a newer one.  Each :meth:`run` takes a
    ticket before searching; if another call has taken a newer ticket by
    the time the results arrive, :meth:`run` returns ``None`` and the caller
    discards them.

    Usage::

        live = LatestSearch(directory.faculty.search)
        results = live.run("smi")
        if results is not None:
            render(results)
    """

    def __init__(self, search: Callable[[str], list[T]]) -> None:
        self._search = search
        self._lock = threading.Lock()
        self._issued = 0

    @property
    def issued(self) -> int:
        """Number of searches started so far."""
        return self._issued

    def run(self, term: str) -> list[T] | None:
        """Search for *term*; ``None`` when a newer search has started since."""
        with self._lock:
            self._issued += 1
            ticket = self._issued

        results = self._search(term)

        with self._lock:
            if ticket != self._issued:
                return None
        return results
