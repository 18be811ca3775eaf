"""Tests for facdir.store.client module."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from facdir.directory import Directory
from facdir.errors import Conflict, NotFound, RemoteUnavailable, Unknown
from facdir.store.client import StoreClient, parse_content_range

BASE_URL = "https://abc.supabase.co"


def _response(
    status: int = 200,
    body: Any = None,
    headers: dict[str, str] | None = None,
    text: str | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    if text is not None:
        response._content = text.encode()
    elif body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = b""
    response.headers.update(headers or {})
    return response


@pytest.fixture()
def session() -> MagicMock:
    mock = MagicMock()
    mock.headers = {}
    return mock


@pytest.fixture()
def client(session: MagicMock) -> StoreClient:
    return StoreClient(BASE_URL + "/", "anon-key", session=session)


class TestInit:
    def test_sets_auth_headers(self, client: StoreClient, session: MagicMock) -> None:
        assert session.headers["apikey"] == "anon-key"
        assert session.headers["Authorization"] == "Bearer anon-key"

    def test_access_token_used_as_bearer(self, session: MagicMock) -> None:
        StoreClient(BASE_URL, "anon-key", access_token="user-jwt", session=session)
        assert session.headers["Authorization"] == "Bearer user-jwt"
        assert session.headers["apikey"] == "anon-key"

    def test_rest_url_strips_trailing_slash(self, client: StoreClient) -> None:
        assert client.rest_url == "https://abc.supabase.co/rest/v1"

    @pytest.mark.parametrize("url, key", [("", "key"), (BASE_URL, "")])
    def test_requires_url_and_key(self, url: str, key: str) -> None:
        with pytest.raises(ValueError):
            StoreClient(url, key)


class TestExecute:
    def test_select_request(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(body=[{"faculty_id": 1}])

        response = client.table("faculty").select().eq("department_id", 2).order("name").execute()

        assert response.data == [{"faculty_id": 1}]
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://abc.supabase.co/rest/v1/faculty")
        assert kwargs["params"] == [
            ("select", "*"),
            ("department_id", "eq.2"),
            ("order", "name.asc"),
        ]
        assert kwargs["headers"]["Accept-Profile"] == "public"
        assert kwargs["json"] is None
        assert kwargs["timeout"] is None

    def test_write_uses_content_profile(self, session: MagicMock) -> None:
        client = StoreClient(BASE_URL, "key", schema="directory", timeout=5, session=session)
        session.request.return_value = _response(201, body=[{"department_id": 9}])

        client.table("departments").insert({"department_name": "Physics"}).select().execute()

        args, kwargs = session.request.call_args
        assert args[0] == "POST"
        assert kwargs["headers"]["Content-Profile"] == "directory"
        assert "Accept-Profile" not in kwargs["headers"]
        assert kwargs["json"] == [{"department_name": "Physics"}]
        assert kwargs["timeout"] == 5

    def test_head_count(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(200, headers={"Content-Range": "*/42"})

        response = client.table("faculty").select("*", count="exact", head=True).execute()

        assert response.count == 42
        assert response.data is None
        assert session.request.call_args.args[0] == "HEAD"

    def test_empty_body(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(204)
        response = client.table("faculty").delete().eq("faculty_id", 1).execute()
        assert response.data is None
        assert response.status == 204


class TestErrorMapping:
    def test_unique_violation_is_conflict(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(
            409,
            body={
                "code": "23505",
                "message": 'duplicate key value violates unique constraint "faculty_email_key"',
                "details": "Key (email)=(a@b.edu) already exists.",
                "hint": None,
            },
        )
        with pytest.raises(Conflict) as excinfo:
            client.table("faculty").insert({"email": "a@b.edu"}).execute()
        assert excinfo.value.code == "23505"
        assert excinfo.value.status == 409

    def test_zero_rows_for_single_is_not_found(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(
            406,
            body={
                "code": "PGRST116",
                "message": "JSON object requested, multiple (or no) rows returned",
                "details": "The result contains 0 rows",
            },
        )
        with pytest.raises(NotFound):
            client.table("faculty").select().eq("faculty_id", 99).single().execute()

    def test_gateway_error_is_remote_unavailable(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(503, text="Service Unavailable")
        with pytest.raises(RemoteUnavailable, match="Service Unavailable"):
            client.table("faculty").select().execute()

    def test_other_error_is_unknown(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(
            400, body={"code": "42703", "message": "column faculty.nope does not exist"}
        )
        with pytest.raises(Unknown, match="nope"):
            client.table("faculty").select().execute()

    def test_connection_error_is_remote_unavailable(self, client: StoreClient, session: MagicMock) -> None:
        cause = requests.ConnectionError("Name or service not known")
        session.request.side_effect = cause
        with pytest.raises(RemoteUnavailable) as excinfo:
            client.table("faculty").select().execute()
        assert excinfo.value.__cause__ is cause

    def test_no_retry(self, client: StoreClient, session: MagicMock) -> None:
        session.request.side_effect = requests.Timeout("read timed out")
        with pytest.raises(RemoteUnavailable):
            client.table("faculty").select().execute()
        assert session.request.call_count == 1


class TestRpc:
    def test_posts_to_function(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(body=[{"department": "CS", "faculty_count": 3}])

        result = client.rpc("get_department_stats")

        assert result == [{"department": "CS", "faculty_count": 3}]
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://abc.supabase.co/rest/v1/rpc/get_department_stats")
        assert kwargs["json"] == {}

    def test_missing_function(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(
            404, body={"code": "PGRST202", "message": "Could not find the function"}
        )
        with pytest.raises(Unknown) as excinfo:
            client.rpc("get_department_stats")
        assert excinfo.value.code == "PGRST202"


class TestContextManager:
    def test_close_closes_session(self, client: StoreClient, session: MagicMock) -> None:
        with client as c:
            assert c is client
        session.close.assert_called_once()


class TestDirectoryOverHttp:
    FACULTY_ID = "3f0c2b9e-8d1a-4c55-9a43-2b7f6e1d0c11"
    DEPARTMENT_ID = "9b1d7c2a-4e6f-4a08-b3c9-51d2e8f7a604"

    def test_reads_uuid_keyed_rows(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(
            body=[
                {
                    "faculty_id": self.FACULTY_ID,
                    "name": "Alice Smith",
                    "email": "alice@college.edu",
                    "department_id": self.DEPARTMENT_ID,
                    "department": {
                        "department_id": self.DEPARTMENT_ID,
                        "department_name": "Computer Science",
                    },
                }
            ]
        )

        (alice,) = Directory(client).faculty.get_all(with_relations=True)

        assert alice.faculty_id == self.FACULTY_ID
        assert alice.department_id == self.DEPARTMENT_ID
        assert alice.department.department_name == "Computer Science"

    def test_uuid_key_in_filter(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(
            body={"faculty_id": self.FACULTY_ID, "name": "Alice Smith"}
        )

        alice = Directory(client).faculty.get_by_id(self.FACULTY_ID)

        assert alice.name == "Alice Smith"
        _, kwargs = session.request.call_args
        assert ("faculty_id", f"eq.{self.FACULTY_ID}") in kwargs["params"]

    def test_unreadable_rows_degrade_list_reads(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(body=[{"faculty_id": ["not", "a", "key"]}])
        assert Directory(client).faculty.get_all() == []

    def test_unreadable_row_propagates_from_writes(self, client: StoreClient, session: MagicMock) -> None:
        session.request.return_value = _response(201, body={"faculty_id": {"bad": 1}})
        with pytest.raises(Unknown, match="Unreadable faculty row"):
            Directory(client).faculty.create({"name": "X", "email": "x@c.edu"})

    def test_renamed_table(self, session: MagicMock) -> None:
        client = StoreClient(BASE_URL, "key", session=session, tables={"departments": "department"})
        session.request.return_value = _response(body=[{"department_id": 1, "department_name": "CS"}])

        (department,) = Directory(client).departments.get_all()

        args, _ = session.request.call_args
        assert args[1] == f"{BASE_URL}/rest/v1/department"
        assert department.department_name == "CS"


@pytest.mark.parametrize(
    "header, expected",
    [
        ("0-9/42", 42),
        ("*/0", 0),
        ("0-24/*", None),
        (None, None),
        ("bogus", None),
    ],
)
def test_parse_content_range(header: str | None, expected: int | None) -> None:
    assert parse_content_range(header) == expected
