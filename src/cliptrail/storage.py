import logging
import sqlite3
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from cliptrail.config import DB_PATH, MAX_HISTORY
from cliptrail.errors import ImageDecodeError, StorageUnavailableError
from cliptrail.imaging import decode_image, encode_payload
from cliptrail.models import Entry, EntryKind, ImageEntry, ImageInfo, TextEntry
from cliptrail.noise import is_valid_text, normalize_text

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS clipboard_history (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    kind          TEXT NOT NULL CHECK(kind IN ('text', 'image')),
    payload       TEXT NOT NULL,
    captured_at   TEXT NOT NULL,
    image_format  TEXT,
    image_width   INTEGER,
    image_height  INTEGER,
    image_size    INTEGER,
    UNIQUE(kind, payload)
);

CREATE INDEX IF NOT EXISTS idx_captured_at ON clipboard_history(captured_at DESC);
CREATE INDEX IF NOT EXISTS idx_kind ON clipboard_history(kind);
"""


class HistoryStore:
    """Bounded, deduplicated clipboard history backed by SQLite.

    Every mutation commits before returning and then reloads the in-memory
    view from the database, so a caller always reads its own writes. One
    lock serialises access from the poller thread and UI callers; readers
    get fresh lists of immutable entries and never a reference into the
    store.

    Entries are kept in insertion order, oldest first. Indexes accepted by
    ``get`` and ``remove_at`` refer to that order.
    """

    def __init__(self, db_path: str | Path | None = None, max_history: int = MAX_HISTORY):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._max_history = max_history
        self._lock = threading.RLock()
        self._entries: list[Entry] = []
        self._conn: sqlite3.Connection | None = None
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self.init_db()
        except (sqlite3.Error, OSError) as exc:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            raise StorageUnavailableError(f"cannot open history database {self._db_path}: {exc}") from exc
        with self._lock:
            self._refresh()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def max_history(self) -> int:
        return self._max_history

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def init_db(self) -> None:
        conn = self._require_conn()
        conn.executescript(SCHEMA)
        conn.commit()

    # Write path

    def insert_text(self, text: str | bytes) -> TextEntry | None:
        """Record text at the most-recent position.

        Invalid, empty, or unchanged text is ignored and ``None`` returned.
        An existing entry with the same content is moved rather than
        duplicated.
        """
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Ignoring clipboard text that is not valid UTF-8")
                return None
        if not isinstance(text, str) or not is_valid_text(text):
            logger.debug("Ignoring empty or invalid clipboard text")
            return None

        content = normalize_text(text)
        with self._lock:
            self._require_conn()
            if self._is_most_recent(EntryKind.TEXT, content):
                return None
            self._insert(EntryKind.TEXT, content, None)
            return self._entries[-1]

    def insert_image(self, data: bytes, declared_format: str | None = None) -> ImageEntry | None:
        """Record an encoded image at the most-recent position.

        Undecodable or empty data is logged and ignored. The stored format
        is whichever of declared, PNG, JPEG actually decoded.
        """
        if not data:
            logger.debug("Ignoring empty image data")
            return None
        try:
            info = decode_image(data, declared_format)
        except ImageDecodeError as exc:
            logger.warning("Skipping clipboard image: %s", exc)
            return None

        payload = encode_payload(data)
        with self._lock:
            self._require_conn()
            if self._is_most_recent(EntryKind.IMAGE, payload):
                return None
            self._insert(EntryKind.IMAGE, payload, info)
            return self._entries[-1]

    def remove_at(self, index: int) -> bool:
        with self._lock:
            self._require_conn()
            if not 0 <= index < len(self._entries):
                logger.warning("Invalid index %d for history removal (length %d)", index, len(self._entries))
                return False
            entry = self._entries[index]
            with self._transaction() as conn:
                conn.execute("DELETE FROM clipboard_history WHERE id = ?", (entry.id,))
            logger.info("Removed history item at index %d", index)
            return True

    def edit(self, original_text: str, new_text: str) -> TextEntry | None:
        """Rewrite a text entry's content in place.

        The entry keeps its position; its timestamp is refreshed. Returns
        the updated entry, or ``None`` if nothing matched or the new text
        is empty.
        """
        if not isinstance(new_text, str) or not is_valid_text(new_text):
            logger.warning("Refusing to edit entry to empty or invalid text")
            return None
        original = normalize_text(original_text)
        content = normalize_text(new_text)

        with self._lock:
            self._require_conn()
            target = next(
                (e for e in self._entries if e.kind == EntryKind.TEXT and e.payload == original),
                None,
            )
            if target is None:
                logger.warning("No text entry found to edit")
                return None

            captured_at = self._next_timestamp()
            with self._transaction() as conn:
                if content != target.payload:
                    # keep (kind, payload) unique
                    conn.execute(
                        "DELETE FROM clipboard_history WHERE kind = ? AND payload = ? AND id != ?",
                        (EntryKind.TEXT.value, content, target.id),
                    )
                conn.execute(
                    "UPDATE clipboard_history SET payload = ?, captured_at = ? WHERE id = ?",
                    (content, captured_at.isoformat(), target.id),
                )
            return next(e for e in self._entries if e.id == target.id)

    def remove_entry(self, entry_id: int) -> bool:
        """Remove the entry with a given row id, wherever it currently sits."""
        with self._lock:
            self._require_conn()
            index = next((i for i, e in enumerate(self._entries) if e.id == entry_id), None)
            if index is None:
                logger.warning("No history entry with id %d", entry_id)
                return False
            return self.remove_at(index)

    def reinsert(self, entry: Entry) -> Entry | None:
        """Move a previously read entry back to the most-recent position."""
        if isinstance(entry, ImageEntry):
            return self.insert_image(entry.image_bytes(), entry.info.format)
        return self.insert_text(entry.text)

    def clear(self, hooks: Iterable[Callable[[], None]] = ()) -> None:
        """Delete every entry, then call each hook in order.

        Hooks run after the commit and outside the lock, so a hook may call
        back into the store.
        """
        with self._lock:
            with self._transaction() as conn:
                conn.execute("DELETE FROM clipboard_history")
        logger.info("Clipboard history cleared")
        for hook in hooks:
            hook()

    # Read path

    def length(self) -> int:
        with self._lock:
            self._require_conn()
            return len(self._entries)

    def snapshot(self) -> list[Entry]:
        with self._lock:
            self._require_conn()
            return list(self._entries)

    def newest_first(self) -> list[Entry]:
        return self.snapshot()[::-1]

    def get(self, index: int) -> Entry | None:
        with self._lock:
            self._require_conn()
            if not 0 <= index < len(self._entries):
                return None
            return self._entries[index]

    def reload(self) -> None:
        """Re-read the database, picking up writes from other processes."""
        with self._lock:
            self._refresh()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            self._entries = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # Internals; callers hold self._lock

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailableError("history database is not open")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._require_conn()
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"history write failed: {exc}") from exc
        self._refresh()

    def _refresh(self) -> None:
        conn = self._require_conn()
        try:
            rows = conn.execute("SELECT * FROM clipboard_history ORDER BY id ASC").fetchall()
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"history read failed: {exc}") from exc
        self._entries = [self._row_to_entry(r) for r in rows]

    def _is_most_recent(self, kind: EntryKind, payload: str) -> bool:
        if not self._entries:
            return False
        last = self._entries[-1]
        return last.kind == kind and last.payload == payload

    def _next_timestamp(self) -> datetime:
        now = datetime.now()
        if self._entries:
            newest = max(e.captured_at for e in self._entries)
            if newest > now:
                return newest
        return now

    def _insert(self, kind: EntryKind, payload: str, info: ImageInfo | None) -> None:
        captured_at = self._next_timestamp()
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM clipboard_history WHERE kind = ? AND payload = ?",
                (kind.value, payload),
            )
            conn.execute(
                """INSERT INTO clipboard_history
                   (kind, payload, captured_at, image_format, image_width, image_height, image_size)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    kind.value,
                    payload,
                    captured_at.isoformat(),
                    info.format if info else None,
                    info.width if info else None,
                    info.height if info else None,
                    info.byte_size if info else None,
                ),
            )
            evicted = self._evict(conn)
        if evicted:
            logger.debug("Evicted %d oldest entries", evicted)

    def _evict(self, conn: sqlite3.Connection) -> int:
        cursor = conn.execute(
            """DELETE FROM clipboard_history
               WHERE id NOT IN (
                   SELECT id FROM clipboard_history ORDER BY id DESC LIMIT ?
               )""",
            (self._max_history,),
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> Entry:
        captured_at = datetime.fromisoformat(row["captured_at"])
        if row["kind"] == EntryKind.IMAGE.value:
            return ImageEntry(
                id=row["id"],
                data_b64=row["payload"],
                info=ImageInfo(
                    format=row["image_format"] or "png",
                    width=row["image_width"] or 0,
                    height=row["image_height"] or 0,
                    byte_size=row["image_size"] or 0,
                ),
                captured_at=captured_at,
            )
        return TextEntry(id=row["id"], text=row["payload"], captured_at=captured_at)
