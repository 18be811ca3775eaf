"""Tables of the directory database as the store exposes them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

DEPARTMENT = "departments"
OFFICE = "office"
FACULTY = "faculty"
COURSES = "courses"
PUBLICATIONS = "publications"
FACULTY_COURSE = "faculty_course"
SCRAPE_LOG = "scrape_log"


@dataclass(frozen=True)
class TableSchema:
    """Shape of one remote table.

    Attributes:
        name: Table name.
        primary_key: Generated integer identifier column.
        columns: Every column the table accepts.
        foreign_keys: Referencing column -> referenced table.
        cascade: Referencing columns whose rows are deleted along with the
            referenced row; other references are set to null.
        unique: Columns with a unique constraint.
        created_column: Column stamped on insert, if any.
        updated_column: Column stamped on update, if any.
    """

    name: str
    primary_key: str
    columns: tuple[str, ...]
    foreign_keys: Mapping[str, str] = field(default_factory=dict)
    cascade: frozenset[str] = frozenset()
    unique: tuple[str, ...] = ()
    created_column: str | None = "created_at"
    updated_column: str | None = "updated_at"


DIRECTORY_SCHEMA: dict[str, TableSchema] = {
    t.name: t
    for t in (
        TableSchema(
            name=DEPARTMENT,
            primary_key="department_id",
            columns=("department_id", "department_name", "hod_id", "created_at", "updated_at"),
            foreign_keys={"hod_id": FACULTY},
        ),
        TableSchema(
            name=OFFICE,
            primary_key="office_id",
            columns=("office_id", "room_number", "block", "location", "created_at", "updated_at"),
        ),
        TableSchema(
            name=FACULTY,
            primary_key="faculty_id",
            columns=(
                "faculty_id", "name", "designation", "qualification", "email",
                "phone", "profile_link", "department_id", "office_id",
                "created_at", "updated_at",
            ),
            foreign_keys={"department_id": DEPARTMENT, "office_id": OFFICE},
            unique=("email",),
        ),
        TableSchema(
            name=COURSES,
            primary_key="course_id",
            columns=(
                "course_id", "course_name", "course_code", "credits",
                "department_id", "created_at", "updated_at",
            ),
            foreign_keys={"department_id": DEPARTMENT},
        ),
        TableSchema(
            name=PUBLICATIONS,
            primary_key="publication_id",
            columns=(
                "publication_id", "faculty_id", "title", "journal",
                "publication_year", "link", "created_at", "updated_at",
            ),
            foreign_keys={"faculty_id": FACULTY},
            cascade=frozenset({"faculty_id"}),
        ),
        TableSchema(
            name=FACULTY_COURSE,
            primary_key="id",
            columns=("id", "faculty_id", "course_id", "semester", "academic_year", "created_at"),
            foreign_keys={"faculty_id": FACULTY, "course_id": COURSES},
            cascade=frozenset({"faculty_id", "course_id"}),
            updated_column=None,
        ),
        TableSchema(
            name=SCRAPE_LOG,
            primary_key="log_id",
            columns=("log_id", "records_updated", "status", "error_message", "timestamp"),
            created_column="timestamp",
            updated_column=None,
        ),
    )
}
