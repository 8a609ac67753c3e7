"""SQLite-backed store of the latest state of every watched object.

Rows are keyed by (kind, api_version, namespace, name).  Writes are
upserts, so replaying an event is harmless and the most recent write wins.
The connection is shared between the watch loops (via worker threads) and
the REST API, so every statement runs under one lock.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

_log = structlog.get_logger(component="store.resource_store")

SEARCH_LIMIT = 100

_SCHEMA = """
CREATE TABLE IF NOT EXISTS resources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    namespace TEXT NOT NULL,
    kind TEXT NOT NULL,
    api_version TEXT NOT NULL,
    resource_version TEXT NOT NULL,
    data TEXT NOT NULL,
    UNIQUE(kind, api_version, namespace, name)
);
CREATE INDEX IF NOT EXISTS idx_resources_search ON resources(name, namespace, kind);
"""

_COLUMNS = "name, namespace, kind, api_version, resource_version, data"


@dataclass(frozen=True)
class StoredResource:
    """One row of the resources table."""

    name: str
    namespace: str
    kind: str
    api_version: str
    resource_version: str
    data: str

    def object(self) -> dict[str, Any]:
        """The stored manifest, decoded."""
        decoded = json.loads(self.data) if self.data else {}
        return decoded if isinstance(decoded, dict) else {}


class ResourceStore:
    """Upsert/delete/search over a single SQLite file (or ``:memory:``)."""

    def __init__(self, path: str) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        _log.info("resource store opened", path=path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def upsert(self, resource: StoredResource) -> None:
        with self._lock:
            self._conn.execute(
                f"""
                INSERT INTO resources ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(kind, api_version, namespace, name)
                DO UPDATE SET resource_version = excluded.resource_version, data = excluded.data
                """,
                (
                    resource.name,
                    resource.namespace,
                    resource.kind,
                    resource.api_version,
                    resource.resource_version,
                    resource.data,
                ),
            )
            self._conn.commit()

    def delete(self, kind: str, api_version: str, namespace: str, name: str) -> None:
        with self._lock:
            self._conn.execute(
                "DELETE FROM resources WHERE kind = ? AND api_version = ? AND namespace = ? AND name = ?",
                (kind, api_version, namespace, name),
            )
            self._conn.commit()

    def get(self, kind: str, api_version: str, namespace: str, name: str) -> StoredResource | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM resources "
                "WHERE kind = ? AND api_version = ? AND namespace = ? AND name = ?",
                (kind, api_version, namespace, name),
            ).fetchone()
        return StoredResource(*row) if row else None

    def search(self, query: str = "", limit: int = SEARCH_LIMIT) -> list[StoredResource]:
        """Substring match on name, namespace or kind.

        An empty query returns an unfiltered page.  Results are ordered by
        namespace, kind, name and capped at *limit* (at most SEARCH_LIMIT).
        """
        limit = max(0, min(limit, SEARCH_LIMIT))
        with self._lock:
            if not query:
                rows = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM resources ORDER BY namespace, kind, name LIMIT ?",
                    (limit,),
                ).fetchall()
            else:
                pattern = f"%{query}%"
                rows = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM resources "
                    "WHERE name LIKE ? OR namespace LIKE ? OR kind LIKE ? "
                    "ORDER BY namespace, kind, name LIMIT ?",
                    (pattern, pattern, pattern, limit),
                ).fetchall()
        return [StoredResource(*row) for row in rows]

    def count(self) -> int:
        with self._lock:
            (total,) = self._conn.execute("SELECT COUNT(*) FROM resources").fetchone()
        return int(total)

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM resources")
            self._conn.commit()
        _log.info("resource store cleared", path=self._path)
