"""Tests for the Safe Browsing Lookup API client."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Dict, List

import pytest
import requests
from pydantic import ValidationError

from sblookup.safebrowsing.client import (
    MAX_URLS_PER_REQUEST,
    SafeBrowser,
    SafeBrowserConfig,
    SafeBrowsingError,
    url_pattern,
)


class _DummyResponse:  # pylint: disable=too-few-public-methods
    """Minimal stub mimicking requests.Response for tests."""

    def __init__(self, *, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class _DummySession(requests.Session):
    """Records POST calls and replays canned responses."""

    def __init__(self, responses: List[_DummyResponse] | None = None, *, raise_exc: Exception | None = None) -> None:
        super().__init__()
        self._responses = list(responses or [])
        self._exc = raise_exc
        self.post_calls: List[Dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> _DummyResponse:  # type: ignore[override]
        if self._exc is not None:
            raise self._exc
        self.post_calls.append({"url": url, **kwargs})
        if self._responses:
            return self._responses.pop(0)
        return _DummyResponse(payload={})


def _match(url: str, threat_type: str = "MALWARE") -> Dict[str, Any]:
    return {
        "threatType": threat_type,
        "platformType": "ANY_PLATFORM",
        "threatEntryType": "URL",
        "threat": {"url": url},
        "cacheDuration": "300s",
    }


def test_config_rejects_blank_api_key():
    with pytest.raises(ValidationError):
        SafeBrowserConfig(api_key="  ")


def test_request_shape():
    session = _DummySession()
    browser = SafeBrowser(SafeBrowserConfig(api_key="secret"), session=session)

    assert browser.lookup_urls(["https://google.com"]) == [[]]

    call = session.post_calls[0]
    assert call["url"] == "https://safebrowsing.googleapis.com/v4/threatMatches:find"
    assert call["headers"] == {"X-Goog-Api-Key": "secret"}
    info = call["json"]["threatInfo"]
    assert info["threatEntries"] == [{"url": "https://google.com"}]
    assert info["threatEntryTypes"] == ["URL"]
    assert "MALWARE" in info["threatTypes"]
    assert call["json"]["client"]["clientId"] == "sblookup"


def test_matches_are_aligned_by_position():
    session = _DummySession([
        _DummyResponse(payload={"matches": [
            _match("http://bad1url.org"),
            _match("http://bad1url.org", "SOCIAL_ENGINEERING"),
        ]})
    ])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    results = browser.lookup_urls(["https://google.com", "http://bad1url.org"])

    assert results[0] == []
    assert [m.threat_type for m in results[1]] == ["MALWARE", "SOCIAL_ENGINEERING"]
    assert str(results[1][0]) == "{bad1url.org {MALWARE ANY_PLATFORM URL}}"


def test_large_batches_are_split():
    session = _DummySession()
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    urls = [f"http://host{i}.example" for i in range(MAX_URLS_PER_REQUEST + 1)]
    results = browser.lookup_urls(urls)

    assert len(results) == len(urls)
    assert len(session.post_calls) == 2


def test_transport_error_raises():
    session = _DummySession(raise_exc=requests.ConnectionError("boom"))
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    with pytest.raises(SafeBrowsingError, match="request failed"):
        browser.lookup_urls(["https://google.com"])


def test_http_error_raises_with_api_message():
    session = _DummySession([
        _DummyResponse(status_code=400, payload={"error": {"code": 400, "message": "API key not valid."}})
    ])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    with pytest.raises(SafeBrowsingError, match="API key not valid"):
        browser.lookup_urls(["https://google.com"])


def test_invalid_json_raises():
    session = _DummySession([_DummyResponse(payload=None, text="<html>")])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    with pytest.raises(SafeBrowsingError):
        browser.lookup_urls(["https://google.com"])


def test_malformed_match_raises():
    session = _DummySession([_DummyResponse(payload={"matches": [{"threatType": "MALWARE"}]})])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    with pytest.raises(SafeBrowsingError):
        browser.lookup_urls(["https://google.com"])


def test_db_records_lookups(tmp_path: Path):
    db_path = tmp_path / "sb.db"
    session = _DummySession([_DummyResponse(payload={"matches": [_match("http://bad1url.org")]})])

    with SafeBrowser(SafeBrowserConfig(api_key="k", db_path=str(db_path)), session=session) as browser:
        browser.lookup_urls(["http://bad1url.org"])

    conn = sqlite3.connect(db_path)
    rows = conn.execute("SELECT url, match_count, threat_types FROM lookups").fetchall()
    conn.close()
    assert rows == [("http://bad1url.org", 1, "MALWARE")]


def test_unusable_db_path_fails_construction(tmp_path: Path):
    config = SafeBrowserConfig(api_key="k", db_path=str(tmp_path / "nope" / "sb.db"))
    with pytest.raises(SafeBrowsingError, match="unable to open database"):
        SafeBrowser(config, session=_DummySession())


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://bad1url.org", "bad1url.org"),
        ("http://Bad1URL.org/", "bad1url.org"),
        ("https://evil.example/path/x.exe", "evil.example/path/x.exe"),
        ("evil.example/login", "evil.example/login"),
        ("", ""),
    ],
)
def test_url_pattern(url, expected):
    assert url_pattern(url) == expected


def test_canonicalised_echo_is_kept_for_single_url():
    session = _DummySession([_DummyResponse(payload={"matches": [_match("http://bad1url.org/")]})])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    results = browser.lookup_urls(["http://bad1url.org"])

    assert [m.threat_type for m in results[0]] == ["MALWARE"]


def test_unrequested_match_in_batch_raises():
    session = _DummySession([_DummyResponse(payload={"matches": [_match("http://other.example/")]})])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    with pytest.raises(SafeBrowsingError, match="unrequested URL"):
        browser.lookup_urls(["http://a.example", "http://b.example"])


def test_http_error_body_is_one_line():
    session = _DummySession([_DummyResponse(status_code=503, payload=None, text="<html>\n<body>\nUnavailable\n</body>")])
    browser = SafeBrowser(SafeBrowserConfig(api_key="k"), session=session)

    with pytest.raises(SafeBrowsingError) as exc:
        browser.lookup_urls(["https://google.com"])
    assert "\n" not in str(exc.value)
    assert "Unavailable" in str(exc.value)
