"""SQLite-backed version history stored under the workspace root."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..exceptions import PersistenceError
from ..logging_config import get_logger
from ..models import StoredVersion, VersionEvent

logger = get_logger(__name__)

DATABASE_FILENAME = "tamatebako.sqlite"

# Sortable text representation used for occurred_at
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Accepted order keys -> column. Anything else falls back to project_name.
ORDER_KEYS = {
    "project_name": "project_name",
    "name": "project_name",
    "version": "version",
    "occurred_at": "occurred_at",
    "datetime": "occurred_at",
    "bump_date": "occurred_at",
}
DEFAULT_ORDER_KEY = "project_name"

_COLUMNS = "id, project_name, channel, version, occurred_at, url"


def _row_to_version(row: sqlite3.Row) -> StoredVersion:
    return StoredVersion(
        id=row["id"],
        project_name=row["project_name"],
        channel=row["channel"],
        version=row["version"],
        occurred_at=datetime.strptime(row["occurred_at"], _TIMESTAMP_FORMAT),
        url=row["url"],
    )


class HistoryStore:
    """Deduplicated, append-only history of version events.

    Uniqueness of ``(project_name, channel, version)`` is enforced by the
    table itself, which makes ``append`` idempotent: sources can re-emit
    everything they see on every run.

    Usage::

        with HistoryStore("/home/me/.tamatebako/tamatebako.sqlite") as store:
            store.append(event)
            for row in store.latest_per_project("version", descending=True):
                ...

    ``":memory:"`` is accepted as a path for throwaway stores.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @classmethod
    def in_directory(cls, root: Union[str, Path]) -> "HistoryStore":
        return cls(Path(root) / DATABASE_FILENAME)

    @property
    def conn(self) -> sqlite3.Connection:
        """Return the active connection. Raises if not connected."""
        if self._conn is None:
            raise RuntimeError("HistoryStore is not connected. Use as context manager or call connect().")
        return self._conn

    # ── lifecycle ─────────────────────────────────────────────────

    def connect(self) -> sqlite3.Connection:
        """Open (or create) the database and create the table if absent."""
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.row_factory = sqlite3.Row
            self._conn = conn
            self._create_schema()
        except (sqlite3.Error, OSError) as e:
            self.close()
            raise PersistenceError("connect", str(e))
        logger.debug("History store connected at %s", self.db_path)
        return conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "HistoryStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _create_schema(self) -> None:
        c = self.conn
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS version_history (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                project_name TEXT,
                channel      TEXT,
                version      TEXT,
                occurred_at  TIMESTAMP,
                url          TEXT,
                UNIQUE (project_name, channel, version)
            )
            """
        )
        c.execute(
            "CREATE INDEX IF NOT EXISTS idx_version_history_project "
            "ON version_history(project_name, occurred_at)"
        )
        c.commit()

    # ── writes ────────────────────────────────────────────────────

    def append(self, event: VersionEvent) -> bool:
        """Insert ``event`` unless its (project, channel, version) exists.

        Returns:
            True if a row was inserted, False if it was already present.

        Raises:
            PersistenceError: On any storage failure other than a duplicate.
        """
        with self._lock:
            try:
                cursor = self.conn.execute(
                    """
                    INSERT OR IGNORE INTO version_history
                        (project_name, channel, version, occurred_at, url)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        event.project_name,
                        event.channel,
                        event.version,
                        event.occurred_at.strftime(_TIMESTAMP_FORMAT),
                        event.url,
                    ),
                )
                self.conn.commit()
            except sqlite3.IntegrityError:
                # another writer won the race for the same key
                self.conn.rollback()
                return False
            except sqlite3.Error as e:
                raise PersistenceError("append", str(e))

        inserted = cursor.rowcount == 1
        if inserted:
            logger.info("insert data. %s %s %s", event.project_name, event.channel or "-", event.version)
        return inserted

    # ── reads ─────────────────────────────────────────────────────

    def _query(self, operation: str, sql: str, params: tuple = ()) -> list[StoredVersion]:
        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(operation, str(e))
        return [_row_to_version(r) for r in rows]

    def all(self, project_name: Optional[str] = None, limit: Optional[int] = None) -> list[StoredVersion]:
        """Return the history, most recent first (later inserts first on ties)."""
        sql = f"SELECT {_COLUMNS} FROM version_history"
        params: tuple = ()
        if project_name is not None:
            sql += " WHERE project_name = ?"
            params = (project_name,)
        sql += " ORDER BY occurred_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        return self._query("all", sql, params)

    def latest_per_project(
        self, order_key: str = DEFAULT_ORDER_KEY, descending: bool = False
    ) -> list[StoredVersion]:
        """Return one row per project: its latest ``occurred_at``.

        When several rows of a project share the latest timestamp, the one
        inserted last (highest id) wins. The result is sorted by
        ``order_key`` (project_name, version or occurred_at; unknown keys
        fall back to project_name), then by project_name.
        """
        column = ORDER_KEYS.get(order_key, DEFAULT_ORDER_KEY)
        if order_key not in ORDER_KEYS:
            logger.debug("Unknown order key %r, ordering by %s", order_key, DEFAULT_ORDER_KEY)
        direction = "DESC" if descending else "ASC"

        # column and direction come from fixed whitelists above
        sql = f"""
            SELECT {_COLUMNS} FROM version_history AS vh
            WHERE vh.id = (
                SELECT vh2.id FROM version_history AS vh2
                WHERE vh2.project_name = vh.project_name
                ORDER BY vh2.occurred_at DESC, vh2.id DESC
                LIMIT 1
            )
            ORDER BY vh.{column} {direction}, vh.project_name {direction}
        """
        return self._query("latest_per_project", sql)

    def count(self, project_name: Optional[str] = None) -> int:
        """Number of stored rows, optionally for one project."""
        sql = "SELECT COUNT(*) AS cnt FROM version_history"
        params: tuple = ()
        if project_name is not None:
            sql += " WHERE project_name = ?"
            params = (project_name,)
        try:
            row = self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError("count", str(e))
        return row["cnt"] if row else 0
