"""
SQLite-backed key-value store for small client state.

Holds JSON strings under fixed keys (shape history, saved buildings).
Writes are best-effort: a failing write is logged and reported through the
return value, and the caller keeps its in-memory copy as the truth for the
rest of the session.

Usage
-----
    kv = KeyValueStore()
    kv.set_json("mmap_shape_history", [{"mode": "rect", "w": 80, "h": 40}])
    history = kv.get_json("mmap_shape_history", [])
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional, Union

log = logging.getLogger(__name__)

_DEFAULT_DB = Path(__file__).resolve().parent.parent.parent / "data" / "mmap_state.db"


class KeyValueStore:
    """String key → string value table.

    Pass ``":memory:"`` as *db_path* for a throwaway in-process store.
    """

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        if db_path is None:
            db_path = _DEFAULT_DB
        if str(db_path) != ":memory:":
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        if str(db_path) != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._write_lock = threading.Lock()
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        self._conn.commit()
        log.info("KeyValueStore opened: %s", self._path)

    def get(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            log.warning("KeyValueStore read of %r failed: %s", key, exc)
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> bool:
        """Store *value*; returns False (and logs) if the write failed."""
        with self._write_lock:
            try:
                self._conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                log.warning("KeyValueStore write of %r failed: %s", key, exc)
                return False
        return True

    def delete(self, key: str) -> bool:
        """Remove *key*; returns False (and logs) if the write failed."""
        with self._write_lock:
            try:
                self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                self._conn.commit()
            except sqlite3.Error as exc:
                log.warning("KeyValueStore delete of %r failed: %s", key, exc)
                return False
        return True

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if not raw:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("Ignoring corrupt JSON stored under %r", key)
            return default

    def set_json(self, key: str, obj: Any) -> bool:
        return self.set(key, json.dumps(obj))

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error:
            pass

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
