from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from tube_lyrics.errors import CacheError

logger = logging.getLogger(__name__)


class BlobStore:
    """
    Durable name -> text blob storage in a single sqlite table.

    Each logical store (e.g. the lyrics cache) is one serialized value under
    one name, written whole.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        return con

    def _init_db(self) -> None:
        try:
            with self._connect() as con:
                con.execute(
                    """
                    CREATE TABLE IF NOT EXISTS blobs (
                        name TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at INTEGER NOT NULL
                    );
                    """
                )
        except sqlite3.DatabaseError as e:
            # unreadable file; reads and writes will report it too
            logger.warning("Cannot initialize store %s: %s", self.db_path, e)

    def read(self, name: str) -> str | None:
        try:
            with self._connect() as con:
                row = con.execute("SELECT value FROM blobs WHERE name=?", (name,)).fetchone()
        except sqlite3.DatabaseError as e:
            raise CacheError(f"Cannot read {name!r} from {self.db_path}: {e}") from e
        return None if row is None else row["value"]

    def write(self, name: str, value: str) -> None:
        now = int(time.time())
        try:
            with self._connect() as con:
                con.execute(
                    """
                    INSERT INTO blobs(name, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        value=excluded.value,
                        updated_at=excluded.updated_at
                    """,
                    (name, value, now),
                )
        except sqlite3.DatabaseError as e:
            raise CacheError(f"Cannot write {name!r} to {self.db_path}: {e}") from e

    def delete(self, name: str) -> None:
        try:
            with self._connect() as con:
                con.execute("DELETE FROM blobs WHERE name=?", (name,))
        except sqlite3.DatabaseError as e:
            raise CacheError(f"Cannot delete {name!r} from {self.db_path}: {e}") from e
