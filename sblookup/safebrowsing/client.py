"""
Thin client for the Safe Browsing v4 Lookup API.

Every lookup is a single `threatMatches:find` request; there is no local
threat list, no hash-prefix matching and no result cache. When a database
path is configured, each lookup is recorded there for later inspection.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit

import requests
from pydantic import BaseModel, ConfigDict, Field, field_validator

from sblookup.outcomes import ThreatMatch
from sblookup.safebrowsing.db import init_db, record_lookup


DEFAULT_SERVER_URL = "https://safebrowsing.googleapis.com"
DEFAULT_CLIENT_ID = "sblookup"
DEFAULT_CLIENT_VERSION = "0.1.0"
DEFAULT_THREAT_TYPES = [
    "MALWARE",
    "SOCIAL_ENGINEERING",
    "UNWANTED_SOFTWARE",
    "POTENTIALLY_HARMFUL_APPLICATION",
]
DEFAULT_PLATFORM_TYPES = ["ANY_PLATFORM"]
DEFAULT_TIMEOUT = 10.0

# Lookup API limit on threatEntries per request.
MAX_URLS_PER_REQUEST = 500


class SafeBrowsingError(RuntimeError):
    """Raised when the client cannot be built or a lookup call fails."""


class SafeBrowserConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    api_key: str
    db_path: str = ""
    logger: Optional[logging.Logger] = None
    server_url: str = DEFAULT_SERVER_URL
    client_id: str = DEFAULT_CLIENT_ID
    client_version: str = DEFAULT_CLIENT_VERSION
    threat_types: List[str] = Field(default_factory=lambda: list(DEFAULT_THREAT_TYPES))
    platform_types: List[str] = Field(default_factory=lambda: list(DEFAULT_PLATFORM_TYPES))
    request_timeout: float = DEFAULT_TIMEOUT

    @field_validator("api_key")
    @classmethod
    def _api_key_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("API key must not be empty")
        return value.strip()


class _Threat(BaseModel):
    url: str


class _Match(BaseModel):
    threatType: str
    platformType: str
    threatEntryType: str
    threat: _Threat


class _FindResponse(BaseModel):
    matches: List[_Match] = Field(default_factory=list)


def url_pattern(url: str) -> str:
    """Host plus non-root path, the expression shown for a match."""
    target = url if "://" in url else f"http://{url}"
    try:
        parts = urlsplit(target)
        host = (parts.hostname or "").rstrip(".")
    except ValueError:
        return url
    if not host:
        return url
    if parts.path and parts.path != "/":
        return host + parts.path
    return host


def _one_line(text: str, limit: int = 200) -> str:
    return " ".join(text.split())[:limit]


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return _one_line(response.text)
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return _one_line(str(body["error"].get("message", body["error"])))
    return _one_line(str(body))


class SafeBrowser:
    """Looks up URLs against the Safe Browsing Lookup API."""

    def __init__(
        self, config: SafeBrowserConfig, session: Optional[requests.Session] = None
    ) -> None:
        self.config = config
        self.logger = config.logger or logging.getLogger(__name__)
        self._owns_session = session is None
        self._session = session if session is not None else self._build_session()
        self._conn: Optional[sqlite3.Connection] = None

        if config.db_path:
            try:
                self._conn = init_db(config.db_path)
            except sqlite3.Error as exc:
                self.close()
                raise SafeBrowsingError(
                    f"unable to open database {config.db_path}: {exc}"
                ) from exc
            self.logger.debug("Recording lookups in %s", config.db_path)

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "User-Agent": f"{self.config.client_id}/{self.config.client_version}",
            "Content-Type": "application/json",
        })
        return session

    def _request_body(self, urls: Sequence[str]) -> Dict[str, Any]:
        return {
            "client": {
                "clientId": self.config.client_id,
                "clientVersion": self.config.client_version,
            },
            "threatInfo": {
                "threatTypes": list(self.config.threat_types),
                "platformTypes": list(self.config.platform_types),
                "threatEntryTypes": ["URL"],
                "threatEntries": [{"url": u} for u in urls],
            },
        }

    def _find_threat_matches(self, urls: Sequence[str]) -> List[List[ThreatMatch]]:
        endpoint = f"{self.config.server_url.rstrip('/')}/v4/threatMatches:find"
        self.logger.debug("POST %s (%d URL(s))", endpoint, len(urls))

        try:
            response = self._session.post(
                endpoint,
                json=self._request_body(urls),
                headers={"X-Goog-Api-Key": self.config.api_key},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            raise SafeBrowsingError(f"request failed: {exc}") from exc

        if response.status_code != 200:
            raise SafeBrowsingError(
                f"unexpected status {response.status_code}: {_error_message(response)}"
            )

        try:
            parsed = _FindResponse.model_validate(response.json())
        except ValueError as exc:
            raise SafeBrowsingError(f"invalid response body: {exc}") from exc

        by_url: Dict[str, List[ThreatMatch]] = {u: [] for u in urls}
        for match in parsed.matches:
            # The service may echo a canonicalised form of a single submitted URL.
            if match.threat.url in by_url:
                key = match.threat.url
            elif len(by_url) == 1:
                key = next(iter(by_url))
            else:
                raise SafeBrowsingError(
                    f"match for unrequested URL {match.threat.url!r}"
                )
            by_url[key].append(
                ThreatMatch(
                    pattern=url_pattern(match.threat.url),
                    threat_type=match.threatType,
                    platform_type=match.platformType,
                    threat_entry_type=match.threatEntryType,
                )
            )
        return [list(by_url[u]) for u in urls]

    def lookup_urls(self, urls: Sequence[str]) -> List[List[ThreatMatch]]:
        """
        Return one match list per URL, aligned by position.

        An empty list means the service knows no threat for that URL.
        Raises SafeBrowsingError if any request fails.
        """
        urls = list(urls)
        results: List[List[ThreatMatch]] = []
        for start in range(0, len(urls), MAX_URLS_PER_REQUEST):
            batch = urls[start:start + MAX_URLS_PER_REQUEST]
            results.extend(self._find_threat_matches(batch))

        if self._conn is not None:
            try:
                for url, matches in zip(urls, results):
                    record_lookup(self._conn, url, matches)
            except sqlite3.Error as exc:
                raise SafeBrowsingError(f"unable to record lookup: {exc}") from exc

        return results

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "SafeBrowser":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "SafeBrowser",
    "SafeBrowserConfig",
    "SafeBrowsingError",
    "url_pattern",
]
