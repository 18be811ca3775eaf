"""Tests for facdir.services.catalog module."""

from __future__ import annotations

import pytest

from facdir.data.models import Department
from facdir.directory import Directory
from facdir.errors import RemoteUnavailable
from facdir.store.memory import MemoryStore


class TestDepartments:
    def test_ordered_by_name(self, store: MemoryStore, directory: Directory) -> None:
        store.seed("departments", [{"department_name": "Biology"}])
        names = [d.department_name for d in directory.departments.get_all()]
        assert names == ["Biology", "Computer Science", "Mathematics"]

    def test_find_by_name_ignores_case_and_padding(self, directory: Directory) -> None:
        department = directory.departments.find_by_name("  computer SCIENCE ")
        assert department.department_id == 1

    @pytest.mark.parametrize("name", ["Physics", "", None])
    def test_find_by_name_no_match(self, directory: Directory, name: str | None) -> None:
        assert directory.departments.find_by_name(name) is None

    def test_set_head_of_department(self, directory: Directory) -> None:
        updated = directory.departments.update(1, Department(hod_id=2))
        assert updated.hod_id == 2
        assert updated.department_name == "Computer Science"

    def test_count(self, directory: Directory) -> None:
        assert directory.departments.count() == 2

    def test_delete_unassigns_faculty(self, directory: Directory) -> None:
        assert directory.departments.delete(2)
        assert directory.faculty.get_by_id(3).department_id is None


class TestOffices:
    def test_ordered_by_block_then_room(self, store: MemoryStore, directory: Directory) -> None:
        store.seed(
            "office",
            [
                {"room_number": "201", "block": "B"},
                {"room_number": "102", "block": "A"},
            ],
        )
        offices = [(o.block, o.room_number) for o in directory.offices.get_all()]
        assert offices == [("A", "101"), ("A", "102"), ("B", "201")]

    def test_create(self, directory: Directory) -> None:
        office = directory.offices.create({"room_number": "305", "block": "C", "location": "Annex"})
        assert office.office_id == 2
        assert directory.offices.get_by_id(2).location == "Annex"


class TestCourses:
    @pytest.fixture(autouse=True)
    def _courses(self, store: MemoryStore) -> None:
        store.seed(
            "courses",
            [
                {"course_code": "CS201", "course_name": "Data Structures", "credits": 4, "department_id": 1},
                {"course_code": "CS101", "course_name": "Programming", "credits": 3, "department_id": 1},
                {"course_code": "MA101", "course_name": "Calculus", "credits": 4, "department_id": 2},
            ],
        )

    def test_ordered_by_code(self, directory: Directory) -> None:
        codes = [c.course_code for c in directory.courses.get_all()]
        assert codes == ["CS101", "CS201", "MA101"]

    def test_with_department(self, directory: Directory) -> None:
        courses = directory.courses.get_all(with_relations=True)
        assert courses[2].department.department_name == "Mathematics"

    def test_by_department(self, directory: Directory) -> None:
        assert [c.course_code for c in directory.courses.get_by_department(1)] == ["CS101", "CS201"]


class TestPublications:
    @pytest.fixture(autouse=True)
    def _publications(self, store: MemoryStore) -> None:
        store.seed(
            "publications",
            [
                {"faculty_id": 1, "title": "Beta", "publication_year": 2020},
                {"faculty_id": 2, "title": "Alpha", "publication_year": 2020},
                {"faculty_id": 1, "title": "Gamma", "publication_year": 2023},
            ],
        )

    def test_newest_first_then_title(self, directory: Directory) -> None:
        titles = [p.title for p in directory.publications.get_all()]
        assert titles == ["Gamma", "Alpha", "Beta"]

    def test_with_faculty(self, directory: Directory) -> None:
        pubs = directory.publications.get_all(with_faculty=True)
        assert [p.faculty.name for p in pubs] == ["Alice Smith", "Bob Jones", "Alice Smith"]

    def test_by_faculty(self, directory: Directory) -> None:
        assert [p.title for p in directory.publications.get_by_faculty(1)] == ["Gamma", "Beta"]

    def test_removed_with_faculty(self, directory: Directory) -> None:
        directory.faculty.delete(1)
        assert [p.title for p in directory.publications.get_all()] == ["Alpha"]


class TestScrapeLogs:
    def test_log_success(self, directory: Directory) -> None:
        entry = directory.scrape_logs.log(12, "success")
        assert entry.log_id == 1
        assert entry.records_updated == 12
        assert entry.error_message is None
        assert entry.timestamp

    def test_newest_first(self, directory: Directory) -> None:
        directory.scrape_logs.log(1, "success")
        directory.scrape_logs.log(0, "failed", "timeout")
        entries = directory.scrape_logs.get_all()
        assert [(e.status, e.error_message) for e in entries] == [
            ("failed", "timeout"),
            ("success", None),
        ]

    def test_unknown_status(self, directory: Directory) -> None:
        with pytest.raises(ValueError):
            directory.scrape_logs.log(1, "partial")

    def test_log_propagates_store_failure(self, unreachable: Directory) -> None:
        with pytest.raises(RemoteUnavailable):
            unreachable.scrape_logs.log(0, "failed", "boom")


def test_list_reads_degrade(unreachable: Directory) -> None:
    assert unreachable.departments.get_all() == []
    assert unreachable.departments.find_by_name("Mathematics") is None
    assert unreachable.offices.get_all() == []
    assert unreachable.courses.get_by_department(1) == []
    assert unreachable.publications.get_all(with_faculty=True) == []
    assert unreachable.scrape_logs.get_all() == []
