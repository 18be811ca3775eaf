"""Shared fixtures: an in-memory store seeded with a small directory."""

from __future__ import annotations

from typing import Any

import pytest

from facdir.directory import Directory
from facdir.errors import RemoteUnavailable
from facdir.store.memory import MemoryStore


class UnreachableStore(MemoryStore):
    """A store whose every call fails as if the network were down."""

    def execute(self, query: Any):
        raise RemoteUnavailable("Connection refused")

    def rpc(self, function: str, params: dict | None = None) -> Any:
        raise RemoteUnavailable("Connection refused")


@pytest.fixture()
def store() -> MemoryStore:
    """Two departments, one office and three faculty members.

    Department ids: 1 Computer Science, 2 Mathematics.
    Faculty ids: 1 Alice Smith, 2 Bob Jones (both CS), 3 Carol White (Maths).
    """
    store = MemoryStore()
    store.seed(
        "departments",
        [{"department_name": "Computer Science"}, {"department_name": "Mathematics"}],
    )
    store.seed("office", [{"room_number": "101", "block": "A", "location": "Main Building"}])
    store.seed(
        "faculty",
        [
            {
                "name": "Alice Smith",
                "email": "alice@college.edu",
                "designation": "Professor",
                "department_id": 1,
                "office_id": 1,
            },
            {
                "name": "Bob Jones",
                "email": "bob@college.edu",
                "designation": "Assistant Professor",
                "department_id": 1,
            },
            {
                "name": "Carol White",
                "email": "carol@college.edu",
                "designation": "Lecturer",
                "department_id": 2,
            },
        ],
    )
    return store


@pytest.fixture()
def directory(store: MemoryStore) -> Directory:
    return Directory(store)


@pytest.fixture()
def unreachable() -> Directory:
    """A directory whose store cannot be reached."""
    return Directory(UnreachableStore())
