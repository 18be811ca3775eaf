"""Pydantic models for directory records."""

from __future__ import annotations

from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from facdir.store import schema

# Serial integers in older databases, UUID strings in the generated schema.
Identifier = Union[int, str]


class Record(BaseModel):
    """A row of a remote table, plus any relations embedded at read time."""

    model_config = ConfigDict(extra="ignore")

    table: ClassVar[str]
    primary_key: ClassVar[str]
    relations: ClassVar[frozenset[str]] = frozenset()
    generated: ClassVar[frozenset[str]] = frozenset({"created_at", "updated_at"})

    @property
    def identifier(self) -> Identifier | None:
        return getattr(self, self.primary_key)

    def to_row(self, *, partial: bool = False) -> dict[str, Any]:
        """Columns to send on a write.

        Embedded relations and store-generated timestamps are never sent.
        A full row drops ``None`` values so the store applies its defaults;
        a partial row keeps exactly the fields that were set.
        """
        exclude = set(self.relations) | set(self.generated)
        if partial:
            return self.model_dump(exclude=exclude, exclude_unset=True)
        return self.model_dump(exclude=exclude, exclude_none=True)


class Department(Record):
    table: ClassVar[str] = schema.DEPARTMENT
    primary_key: ClassVar[str] = "department_id"

    department_id: Optional[Identifier] = None
    department_name: Optional[str] = None
    hod_id: Optional[Identifier] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Office(Record):
    table: ClassVar[str] = schema.OFFICE
    primary_key: ClassVar[str] = "office_id"

    office_id: Optional[Identifier] = None
    room_number: Optional[str] = None
    block: Optional[str] = None
    location: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class FacultySummary(BaseModel):
    """The owning faculty member embedded in a publication."""

    model_config = ConfigDict(extra="ignore")

    faculty_id: Optional[Identifier] = None
    name: Optional[str] = None


class Course(Record):
    table: ClassVar[str] = schema.COURSES
    primary_key: ClassVar[str] = "course_id"
    relations: ClassVar[frozenset[str]] = frozenset({"department"})

    course_id: Optional[Identifier] = None
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    credits: Optional[int] = None
    department_id: Optional[Identifier] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    department: Optional[Department] = None


class FacultyCourse(Record):
    """Assignment of a course to a faculty member for a semester."""

    table: ClassVar[str] = schema.FACULTY_COURSE
    primary_key: ClassVar[str] = "id"
    relations: ClassVar[frozenset[str]] = frozenset({"courses"})
    generated: ClassVar[frozenset[str]] = frozenset({"created_at"})

    id: Optional[Identifier] = None
    faculty_id: Optional[Identifier] = None
    course_id: Optional[Identifier] = None
    semester: Optional[str] = None
    academic_year: Optional[str] = None
    created_at: Optional[str] = None

    courses: Optional[Course] = None


class Publication(Record):
    table: ClassVar[str] = schema.PUBLICATIONS
    primary_key: ClassVar[str] = "publication_id"
    relations: ClassVar[frozenset[str]] = frozenset({"faculty"})

    publication_id: Optional[Identifier] = None
    faculty_id: Optional[Identifier] = None
    title: Optional[str] = None
    journal: Optional[str] = None
    publication_year: Optional[int] = None
    link: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    faculty: Optional[FacultySummary] = None


class Faculty(Record):
    table: ClassVar[str] = schema.FACULTY
    primary_key: ClassVar[str] = "faculty_id"
    relations: ClassVar[frozenset[str]] = frozenset(
        {"department", "office", "faculty_course", "publications"}
    )

    faculty_id: Optional[Identifier] = None
    name: Optional[str] = None
    designation: Optional[str] = None
    qualification: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_link: Optional[str] = None
    department_id: Optional[Identifier] = None
    office_id: Optional[Identifier] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    department: Optional[Department] = None
    office: Optional[Office] = None
    faculty_course: Optional[list[FacultyCourse]] = None
    publications: Optional[list[Publication]] = None


class ScrapeLog(Record):
    table: ClassVar[str] = schema.SCRAPE_LOG
    primary_key: ClassVar[str] = "log_id"
    generated: ClassVar[frozenset[str]] = frozenset({"timestamp"})

    log_id: Optional[Identifier] = None
    records_updated: Optional[int] = None
    status: str
    error_message: Optional[str] = None
    timestamp: Optional[str] = None


class DepartmentStat(BaseModel):
    """Faculty head-count for one department."""

    department_id: Optional[Identifier] = None
    department: str = "Unknown"
    faculty_count: int = 0


class ScrapedFaculty(BaseModel):
    """A faculty card parsed from a directory page."""

    name: str
    designation: str = ""
    qualification: str = ""
    email: str = ""
    phone: str = ""
    profile_link: str = ""
    department: str = ""
    department_id: Optional[Identifier] = None


class ScrapeResult(BaseModel):
    """Outcome of one scrape run."""

    success: bool
    count: int = 0
    error: Optional[str] = None
    records: list[ScrapedFaculty] = Field(default_factory=list)
