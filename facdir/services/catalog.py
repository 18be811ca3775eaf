"""Departments, offices, courses, publications and scrape logs."""

from __future__ import annotations

from typing import Optional

from facdir.data.models import Course, Department, Identifier, Office, Publication, ScrapeLog
from facdir.services.base import TableService
from facdir.services.policy import empty_on_failure, none_on_failure, propagates

SCRAPE_STATUSES = ("success", "failed")


class DepartmentService(TableService[Department]):
    model = Department
    ordering = (("department_name", True),)

    @none_on_failure
    def find_by_name(self, name: str) -> Department | None:
        """Department whose name equals *name*, ignoring case and padding."""
        wanted = (name or "").strip().lower()
        if not wanted:
            return None
        for department in self._fetch_all(self._ordered(self._select())):
            if (department.department_name or "").strip().lower() == wanted:
                return department
        return None


class OfficeService(TableService[Office]):
    model = Office
    ordering = (("block", True), ("room_number", True))


class CourseService(TableService[Course]):
    model = Course
    ordering = (("course_code", True),)

    WITH_DEPARTMENT = "*, department:department_id(department_id, department_name)"

    @empty_on_failure
    def get_all(self, with_relations: bool = False) -> list[Course]:
        columns = self.WITH_DEPARTMENT if with_relations else "*"
        return self._fetch_all(self._ordered(self._select(columns)))

    @empty_on_failure
    def get_by_department(self, department_id: Identifier) -> list[Course]:
        return self._filtered_by("department_id", department_id)


class PublicationService(TableService[Publication]):
    """Publications, newest first."""

    model = Publication
    ordering = (("publication_year", False), ("title", True))

    WITH_FACULTY = "*, faculty(faculty_id, name)"

    @empty_on_failure
    def get_all(self, with_faculty: bool = False) -> list[Publication]:
        columns = self.WITH_FACULTY if with_faculty else "*"
        return self._fetch_all(self._ordered(self._select(columns)))

    @empty_on_failure
    def get_by_faculty(self, faculty_id: Identifier) -> list[Publication]:
        return self._filtered_by("faculty_id", faculty_id)


class ScrapeLogService(TableService[ScrapeLog]):
    model = ScrapeLog
    ordering = (("timestamp", False), ("log_id", False))

    @propagates
    def log(
        self,
        records_updated: int,
        status: str,
        error_message: Optional[str] = None,
    ) -> ScrapeLog:
        """Record the outcome of one scrape run."""
        if status not in SCRAPE_STATUSES:
            raise ValueError(f"Unknown scrape status {status!r}")
        return self.create(
            {
                "records_updated": records_updated,
                "status": status,
                "error_message": error_message,
            }
        )
