from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from sblookup.outcomes import ThreatMatch


SCHEMA = """
CREATE TABLE IF NOT EXISTS lookups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL,
    match_count INTEGER NOT NULL,
    threat_types TEXT NOT NULL,
    checked_at TEXT NOT NULL
)
"""


def get_connection(db_path: Union[str, Path]) -> sqlite3.Connection:
    return sqlite3.connect(str(db_path))


def init_db(db_path: Union[str, Path]) -> sqlite3.Connection:
    """Open (creating if needed) the lookup store and make sure the schema exists."""
    conn = get_connection(db_path)
    try:
        conn.execute(SCHEMA)
        conn.commit()
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def record_lookup(conn: sqlite3.Connection, url: str, matches: List[ThreatMatch]) -> None:
    threat_types = ",".join(sorted({m.threat_type for m in matches}))
    conn.execute(
        "INSERT INTO lookups (url, match_count, threat_types, checked_at) VALUES (?, ?, ?, ?)",
        (url, len(matches), threat_types, datetime.now(timezone.utc).isoformat()),
    )
    conn.commit()
