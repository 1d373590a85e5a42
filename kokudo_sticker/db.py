from __future__ import annotations
import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from .errors import LoadFailed, RecordNotFound, StickerLogError, StorageUnavailable, WriteFailed
from .logging_setup import get_logger
from .models import Record, RecordIn

# Bump when the layout of the records table changes; _apply_migrations
# brings older files up to this version.
SCHEMA_VERSION = 1

logger = get_logger()

_RECORD_COLUMNS = (
    "road_number",
    "prefecture",
    "location",
    "date",
    "notes",
    "latitude",
    "longitude",
    "photos",
    "created_at",
)
_INSERT_SQL = (
    f"INSERT INTO records ({', '.join(_RECORD_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _RECORD_COLUMNS)})"
)
_UPDATE_SQL = (
    "UPDATE records SET road_number=?, prefecture=?, location=?, date=?, notes=?, "
    "latitude=?, longitude=?, photos=?, created_at=COALESCE(?, created_at) WHERE id=?"
)


def _dict_factory(cursor, row):
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def _apply_migrations(conn: sqlite3.Connection) -> None:
    # Meta table for schema versioning
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS _meta (
            key TEXT PRIMARY KEY,
            value TEXT
        );
        """
    )
    row = conn.execute("SELECT value FROM _meta WHERE key='schema_version'").fetchone()
    try:
        schema_version = int((row or {}).get("value", 0))
    except (TypeError, ValueError):
        schema_version = 0

    if schema_version > SCHEMA_VERSION:
        raise StorageUnavailable(
            f"Database schema version {schema_version} is newer than supported version {SCHEMA_VERSION}"
        )

    if schema_version < SCHEMA_VERSION:
        # AUTOINCREMENT keeps ids monotonic: a deleted id is never handed out again
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                road_number INTEGER NOT NULL,
                prefecture TEXT NOT NULL,
                location TEXT NOT NULL DEFAULT '',
                date TEXT NOT NULL,
                notes TEXT NOT NULL DEFAULT '',
                latitude REAL,
                longitude REAL,
                photos TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_records_date ON records (date);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_records_prefecture ON records (prefecture);")
        conn.execute(
            "INSERT OR REPLACE INTO _meta (key, value) VALUES ('schema_version', ?);",
            (str(SCHEMA_VERSION),),
        )
        logger.info(f"Database schema migrated from version {schema_version} to {SCHEMA_VERSION}")
    conn.commit()


def _to_row(record: RecordIn) -> tuple:
    return (
        record.road_number,
        record.prefecture,
        record.location,
        record.date.isoformat(),
        record.notes,
        record.latitude,
        record.longitude,
        json.dumps(record.photos),
        record.created_at,
    )


def _from_row(row: dict[str, Any]) -> Record:
    data = dict(row)
    data["photos"] = json.loads(data.get("photos") or "[]")
    return Record.model_validate(data)


class RecordStore:
    """Versioned SQLite store holding the single ``records`` collection.

    Every public method is a coroutine that runs one transaction in a worker
    thread. Calls are serialized through an asyncio lock, so rapid-fire
    mutations never interleave on the shared connection.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        async with self._lock:
            return await run_in_threadpool(fn, *args)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailable("Store is not initialized. Call initialize() first.")
        return self._conn

    # Lifecycle

    async def initialize(self) -> None:
        """Open (creating if absent) the database and migrate the schema."""
        await self._run(self._open)

    def _open(self) -> None:
        if self._conn is not None:
            return
        conn: Optional[sqlite3.Connection] = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = _dict_factory
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            _apply_migrations(conn)
        except (sqlite3.Error, OSError, StickerLogError) as e:
            if conn is not None:
                conn.close()
            if isinstance(e, StorageUnavailable):
                raise
            raise StorageUnavailable(f"Could not open database {self.db_path}: {e}") from e
        self._conn = conn
        logger.info(f"Record store opened at {self.db_path}")

    async def close(self) -> None:
        await self._run(self._close)

    def _close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    # Writes

    async def add(self, record: RecordIn) -> int:
        """Insert ``record`` and return the id assigned to it."""
        return await self._run(self._add, record)

    def _add(self, record: RecordIn) -> int:
        conn = self._require_conn()
        try:
            with conn:
                cur = conn.execute(_INSERT_SQL, _to_row(record.stamped()))
        except sqlite3.Error as e:
            raise WriteFailed(f"Could not add record: {e}") from e
        return int(cur.lastrowid)

    async def update(self, record_id: int, record: RecordIn) -> None:
        """Overwrite the record at ``record_id``, keeping its id.

        ``created_at`` is kept unless the new record carries its own value.
        """
        await self._run(self._update, record_id, record)

    def _update(self, record_id: int, record: RecordIn) -> None:
        conn = self._require_conn()
        try:
            with conn:
                cur = conn.execute(_UPDATE_SQL, _to_row(record) + (record_id,))
        except sqlite3.Error as e:
            raise WriteFailed(f"Could not update record {record_id}: {e}") from e
        if cur.rowcount == 0:
            raise RecordNotFound(record_id)

    async def remove(self, record_id: int) -> None:
        """Delete the record at ``record_id``; unknown ids are ignored."""
        await self._run(self._remove, record_id)

    def _remove(self, record_id: int) -> None:
        conn = self._require_conn()
        try:
            with conn:
                conn.execute("DELETE FROM records WHERE id=?", (record_id,))
        except sqlite3.Error as e:
            raise WriteFailed(f"Could not delete record {record_id}: {e}") from e

    async def clear(self) -> None:
        """Delete every record. Irreversible."""
        await self._run(self._clear)

    def _clear(self) -> None:
        conn = self._require_conn()
        try:
            with conn:
                conn.execute("DELETE FROM records")
        except sqlite3.Error as e:
            raise WriteFailed(f"Could not clear records: {e}") from e

    async def replace_all(self, records: Iterable[RecordIn]) -> List[int]:
        """Clear the collection and add ``records`` in order, in one transaction.

        Either every record is stored or the previous collection is left as it was.
        """
        return await self._run(self._replace_all, list(records))

    def _replace_all(self, records: List[RecordIn]) -> List[int]:
        conn = self._require_conn()
        ids: List[int] = []
        try:
            with conn:
                conn.execute("DELETE FROM records")
                for record in records:
                    cur = conn.execute(_INSERT_SQL, _to_row(record.stamped()))
                    ids.append(int(cur.lastrowid))
        except sqlite3.Error as e:
            raise WriteFailed(f"Could not replace records: {e}") from e
        return ids

    # Reads

    async def get(self, record_id: int) -> Optional[Record]:
        return await self._run(self._get, record_id)

    def _get(self, record_id: int) -> Optional[Record]:
        conn = self._require_conn()
        try:
            row = conn.execute("SELECT * FROM records WHERE id=?", (record_id,)).fetchone()
        except sqlite3.Error as e:
            raise LoadFailed(f"Could not load record {record_id}: {e}") from e
        return _from_row(row) if row else None

    async def get_all(self) -> List[Record]:
        """Return every record. Callers must not rely on the order."""
        return await self._run(self._get_all)

    def _get_all(self) -> List[Record]:
        conn = self._require_conn()
        try:
            rows = conn.execute("SELECT * FROM records ORDER BY id").fetchall()
        except sqlite3.Error as e:
            raise LoadFailed(f"Could not load records: {e}") from e
        return [_from_row(row) for row in rows]
