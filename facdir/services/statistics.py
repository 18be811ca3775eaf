"""Aggregate counts over the directory."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from pydantic import ValidationError

from facdir.data.models import DepartmentStat, Identifier
from facdir.errors import DirectoryError, Unknown
from facdir.services.policy import FailurePolicy, empty_on_failure, failure_policy, propagates
from facdir.store.schema import COURSES, DEPARTMENT, FACULTY, PUBLICATIONS

logger = logging.getLogger("facdir")

STATS_FUNCTION = "get_department_stats"

COUNTED_TABLES = {
    "faculty": FACULTY,
    "departments": DEPARTMENT,
    "courses": COURSES,
    "publications": PUBLICATIONS,
}


class StatisticsService:
    """Dashboard figures: table sizes and faculty head-count per department."""

    def __init__(self, store: Any) -> None:
        self.store = store

    @propagates
    def counts(self) -> dict[str, int]:
        """Exact row counts, fetched with count-only queries."""
        return {
            label: self.store.table(table).select("*", count="exact", head=True).execute().count or 0
            for label, table in COUNTED_TABLES.items()
        }

    @empty_on_failure
    def department_statistics(self) -> list[DepartmentStat]:
        """Faculty per department, from the stats function when the store has it."""
        try:
            rows = self.store.rpc(STATS_FUNCTION)
        except DirectoryError as exc:
            logger.info(
                "Stats function unavailable, grouping faculty rows",
                extra={"function": STATS_FUNCTION, "error": exc.message},
            )
        else:
            try:
                return [DepartmentStat.model_validate(row) for row in rows or []]
            except ValidationError as exc:
                raise Unknown(
                    f"Unreadable {STATS_FUNCTION} result", details=str(exc)
                ) from exc

        names: dict[Identifier | None, str] = {}
        counts: Counter[Identifier | None] = Counter()
        for row in self._faculty_departments():
            department_id = row.get("department_id")
            counts[department_id] += 1
            department = row.get("department") or {}
            names[department_id] = department.get("department_name") or "Unknown"

        stats = [
            DepartmentStat(
                department_id=department_id,
                department=names[department_id],
                faculty_count=count,
            )
            for department_id, count in counts.items()
        ]
        stats.sort(key=lambda s: (s.department.lower(), str(s.department_id or "")))
        return stats

    @failure_policy(FailurePolicy.EMPTY, empty=dict)
    def faculty_counts_by_department(self) -> dict[Identifier | None, int]:
        """``{department_id: faculty count}``; unassigned faculty count under ``None``."""
        return dict(Counter(row.get("department_id") for row in self._faculty_departments()))

    def _faculty_departments(self) -> list[dict[str, Any]]:
        query = self.store.table(FACULTY).select(
            "department_id, department:department_id(department_name)"
        )
        return query.execute().data or []
