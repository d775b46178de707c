"""SQLite history of ingest readings.

Goals:
- zero external services needed
- idempotent initialization, safe on every startup
- append-only: rows are inserted, never updated or deleted here
- a corrupted database file is replaced by a fresh one before first use

Every call opens its own connection; nothing is shared between cycles.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List

from reading import Reading

logger = logging.getLogger("db")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS Readings (
  Id INTEGER PRIMARY KEY AUTOINCREMENT,
  Timestamp TEXT NOT NULL,
  SourceUrl TEXT NOT NULL,
  IsAvailable INTEGER NOT NULL CHECK (IsAvailable IN (0, 1)),
  PayloadJson TEXT NULL,
  ErrorMessage TEXT NULL
);

CREATE INDEX IF NOT EXISTS IX_Readings_Timestamp ON Readings(Timestamp DESC);
"""

_SIDE_FILE_SUFFIXES = ("-journal", "-wal", "-shm")


class StoreError(RuntimeError):
    pass


def _connect(path: Path, timeout: float = 5.0) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=timeout)
    conn.row_factory = sqlite3.Row
    return conn


def _check_readable(path: Path, timeout: float) -> None:
    conn = _connect(path, timeout)
    try:
        conn.execute("SELECT name FROM sqlite_master").fetchall()
    finally:
        conn.close()


def _discard(path: Path) -> None:
    path.unlink()
    for suffix in _SIDE_FILE_SUFFIXES:
        side = path.with_name(path.name + suffix)
        if side.exists():
            side.unlink()


def ensure_ready(db_path: str | Path, timeout: float = 5.0) -> bool:
    """Create the schema, repairing a corrupted file first.

    Only corruption (not a database, malformed image) triggers the repair.
    Operational failures such as a lock held by another process raise
    StoreError and leave the file untouched.

    Returns True when an existing file had to be deleted and recreated.
    """
    path = Path(db_path)
    repaired = False

    if path.exists():
        try:
            _check_readable(path, timeout)
        except sqlite3.OperationalError as e:
            raise StoreError(f"could not open database {path}: {e}") from e
        except sqlite3.DatabaseError as e:
            logger.critical(
                "database %s failed the integrity check (%s); deleting it and starting a new history, "
                "all previously recorded readings are lost",
                path,
                e,
            )
            try:
                _discard(path)
            except OSError as oe:
                raise StoreError(f"could not remove corrupted database {path}: {oe}") from oe
            repaired = True

    try:
        conn = _connect(path, timeout)
        try:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        finally:
            conn.close()
    except (sqlite3.Error, OSError) as e:
        raise StoreError(f"could not initialize database {path}: {e}") from e

    return repaired


def append_reading(db_path: str | Path, reading: Reading) -> int:
    payload_json = json.dumps(reading.payload, ensure_ascii=False) if reading.payload is not None else None
    try:
        conn = _connect(Path(db_path))
        try:
            cur = conn.execute(
                """
                INSERT INTO Readings(Timestamp, SourceUrl, IsAvailable, PayloadJson, ErrorMessage)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    reading.timestamp,
                    reading.source_url,
                    1 if reading.is_available else 0,
                    payload_json,
                    reading.error_message,
                ),
            )
            conn.commit()
            return int(cur.lastrowid)
        finally:
            conn.close()
    except (sqlite3.Error, OSError) as e:
        raise StoreError(f"could not append reading: {e}") from e


def recent_readings(db_path: str | Path, limit: int = 10) -> List[Dict[str, Any]]:
    """Newest first."""
    try:
        conn = _connect(Path(db_path))
        try:
            rows = conn.execute(
                "SELECT * FROM Readings ORDER BY Timestamp DESC, Id DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
        finally:
            conn.close()
    except (sqlite3.Error, OSError) as e:
        raise StoreError(f"could not read history: {e}") from e
    return [dict(r) for r in rows]
