"""Entry point to the data access layer."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from facdir.config import store_settings
from facdir.services.catalog import (
    CourseService,
    DepartmentService,
    OfficeService,
    PublicationService,
    ScrapeLogService,
)
from facdir.services.faculty import FacultyService
from facdir.services.statistics import StatisticsService
from facdir.store.client import StoreClient

logger = logging.getLogger("facdir")


class Directory:
    """All directory services bound to one store connection.

    Build it once at startup and pass it to whatever needs data::

        directory = Directory.from_config(load_config())
        faculty, departments = directory.fetch_concurrently(
            directory.faculty.get_all,
            directory.departments.get_all,
        )

    Tests hand it a :class:`~facdir.store.memory.MemoryStore` instead.
    """

    def __init__(self, store: Any, max_workers: int = 4) -> None:
        self.store = store
        self.max_workers = max_workers

        self.departments = DepartmentService(store)
        self.offices = OfficeService(store)
        self.faculty = FacultyService(store)
        self.courses = CourseService(store)
        self.publications = PublicationService(store)
        self.scrape_logs = ScrapeLogService(store)
        self.statistics = StatisticsService(store)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Directory:
        """Connect to the store described by *config*.

        Raises:
            ConfigError: store URL or key missing.
        """
        settings = store_settings(config)
        store = StoreClient(
            settings["url"],
            settings["api_key"],
            schema=settings["schema"],
            timeout=settings["timeout"],
            tables=settings["tables"],
        )
        logger.info("Connected directory", extra={"store_url": settings["url"]})
        return cls(store, max_workers=config.get("workers") or 4)

    def fetch_concurrently(self, *calls: Callable[[], Any]) -> tuple[Any, ...]:
        """Run independent reads in parallel; results come back in call order.

        Waits for every call to finish, then re-raises the first exception
        (in call order) if any call failed.
        """
        if not calls:
            return ()
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(calls))) as pool:
            futures = [pool.submit(call) for call in calls]
        return tuple(f.result() for f in futures)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> Directory:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
