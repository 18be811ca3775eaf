"""Faculty data access: listings, search, joined detail reads, bulk upsert."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from facdir.data.models import Faculty, FacultyCourse, Identifier
from facdir.services.base import TableService
from facdir.services.policy import empty_on_failure, none_on_failure, propagates
from facdir.store.schema import FACULTY_COURSE

DEPARTMENT_EMBED = "department:department_id(department_id, department_name)"
WITH_RELATIONS = f"*, {DEPARTMENT_EMBED}, office:office_id(*)"
WITH_DEPARTMENT = f"*, {DEPARTMENT_EMBED}"
WITH_COURSES = f"*, {DEPARTMENT_EMBED}, faculty_course(*, courses(*))"
WITH_ALL_DETAILS = (
    "*, department:department_id(department_id, department_name, hod_id), "
    "office:office_id(*), faculty_course(*, courses(*)), publications(*)"
)

SEARCH_FIELDS = ("name", "email", "designation")
MIN_SEARCH_LENGTH = 2


class FacultyService(TableService[Faculty]):
    """Faculty members, ordered by name."""

    model = Faculty
    ordering = (("name", True),)

    @empty_on_failure
    def get_all(self, with_relations: bool = False) -> list[Faculty]:
        """Every faculty member; optionally with department and office embedded."""
        columns = WITH_RELATIONS if with_relations else "*"
        return self._fetch_all(self._ordered(self._select(columns)))

    @none_on_failure
    def get_by_id(self, faculty_id: Identifier, with_relations: bool = False) -> Faculty | None:
        columns = WITH_RELATIONS if with_relations else "*"
        return self._fetch_one(self._select(columns).eq(self.primary_key, faculty_id))

    @empty_on_failure
    def get_by_department(
        self, department_id: Identifier, with_relations: bool = False
    ) -> list[Faculty]:
        columns = WITH_RELATIONS if with_relations else "*"
        return self._filtered_by("department_id", department_id, columns)

    @empty_on_failure
    def search(self, term: str) -> list[Faculty]:
        """Case-insensitive substring search over name, email and designation.

        Terms shorter than two characters return the full listing so a
        first keystroke does not blank the results.
        """
        term = (term or "").strip()
        query = self._ordered(self._select(WITH_DEPARTMENT))
        if len(term) < MIN_SEARCH_LENGTH:
            return self._fetch_all(query)
        results = self._fetch_all(query.or_ilike(SEARCH_FIELDS, term))
        if "*" in term:
            # The store treats "*" as a wildcard; keep literal matches only.
            wanted = term.lower()
            results = [
                member for member in results
                if any(wanted in (getattr(member, f) or "").lower() for f in SEARCH_FIELDS)
            ]
        return results

    @none_on_failure
    def get_with_courses(self, faculty_id: Identifier) -> Faculty | None:
        """One faculty member with department and course assignments."""
        return self._fetch_one(self._select(WITH_COURSES).eq(self.primary_key, faculty_id))

    @none_on_failure
    def get_with_all_details(self, faculty_id: Identifier) -> Faculty | None:
        """One faculty member with department, office, courses and publications."""
        return self._fetch_one(
            self._select(WITH_ALL_DETAILS).eq(self.primary_key, faculty_id)
        )

    @propagates
    def assign_course(
        self,
        faculty_id: Identifier,
        course_id: Identifier,
        semester: str,
        academic_year: str,
    ) -> FacultyCourse:
        """Link a course to a faculty member for one semester."""
        row = {
            "faculty_id": faculty_id,
            "course_id": course_id,
            "semester": semester,
            "academic_year": academic_year,
        }
        data = self.store.table(FACULTY_COURSE).insert(row).select().single().execute().data
        return self._validate(data, FacultyCourse)

    @propagates
    def bulk_upsert(
        self,
        records: Iterable[Faculty | Mapping[str, Any]],
        conflict_key: str = "email",
    ) -> list[Faculty]:
        """Insert or update faculty keyed by email."""
        return super().bulk_upsert(records, conflict_key)
