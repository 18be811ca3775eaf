"""Tests for facdir.net.http_client module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from facdir.net.http_client import DEFAULT_USER_AGENT, HttpClient


@pytest.fixture()
def client() -> HttpClient:
    return HttpClient()


def _ok_response(text: str = "") -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.raise_for_status = MagicMock()
    response.text = text
    return response


class TestGet:
    """Tests for HttpClient.get()."""

    def test_sets_user_agent(self) -> None:
        c = HttpClient(user_agent="TestBot/1.0")
        assert c._session.headers["User-Agent"] == "TestBot/1.0"

    def test_default_user_agent(self, client: HttpClient) -> None:
        assert client._session.headers["User-Agent"] == DEFAULT_USER_AGENT

    def test_uses_configured_timeout(self, client: HttpClient) -> None:
        with patch.object(client._session, "get", return_value=_ok_response()) as mock_get:
            client.get("https://college.edu/faculty")

        _, kwargs = mock_get.call_args
        assert kwargs["timeout"] == (10, 30)

    def test_timeout_can_be_overridden_per_call(self, client: HttpClient) -> None:
        with patch.object(client._session, "get", return_value=_ok_response()) as mock_get:
            client.get("https://college.edu", timeout=(1, 2))

        _, kwargs = mock_get.call_args
        assert kwargs["timeout"] == (1, 2)

    def test_raises_on_4xx(self, client: HttpClient) -> None:
        response = MagicMock(spec=requests.Response)
        response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")

        with patch.object(client._session, "get", return_value=response):
            with pytest.raises(requests.HTTPError, match="404"):
                client.get("https://college.edu/missing")

    def test_fetch_html_returns_body(self, client: HttpClient) -> None:
        with patch.object(client._session, "get", return_value=_ok_response("<html></html>")):
            assert client.fetch_html("https://college.edu") == "<html></html>"


class TestFromConfig:
    def test_reads_scraper_section(self) -> None:
        c = HttpClient.from_config(
            {
                "scraper": {
                    "user_agent": "DirBot/2.0",
                    "timeouts": {"connect": 3, "read": 9},
                    "retries": 5,
                }
            }
        )
        assert c._session.headers["User-Agent"] == "DirBot/2.0"
        assert c.timeout == (3, 9)
        assert c._session.get_adapter("https://college.edu").max_retries.total == 5

    def test_defaults_without_section(self) -> None:
        c = HttpClient.from_config({})
        assert c.timeout == (10, 30)
        assert c._session.headers["User-Agent"] == DEFAULT_USER_AGENT


class TestRetryConfig:
    """Test that retry/adapter configuration is applied."""

    def test_adapters_mounted(self) -> None:
        client = HttpClient(max_retries=5)
        http_adapter = client._session.get_adapter("http://college.edu")
        https_adapter = client._session.get_adapter("https://college.edu")
        assert http_adapter.max_retries.total == 5
        assert https_adapter.max_retries.total == 5

    def test_retry_status_forcelist(self, client: HttpClient) -> None:
        adapter = client._session.get_adapter("https://college.edu")
        for status in (500, 502, 503, 504):
            assert status in adapter.max_retries.status_forcelist


class TestContextManager:
    def test_with_statement(self) -> None:
        with HttpClient() as client:
            assert isinstance(client, HttpClient)

    def test_close_closes_session(self, client: HttpClient) -> None:
        with patch.object(client._session, "close") as mock_close:
            client.close()
        mock_close.assert_called_once()
