"""One-time import of history files written by older releases.

Three layouts have existed, newest first:

* a SQLite table ``clipboard_history(type, content, timestamp, image_format, ...)``
* a JSON list of typed items ``[{"type": ..., "content": ..., "image_meta": ...}]``
* a JSON list of plain strings

Each reader is tried in that order and the first one that understands the
file wins. Records are replayed through the normal ``insert_*`` calls so
dedup and the history cap apply, then the file is renamed with a
``.backup`` suffix. Nothing is ever deleted.
"""

import json
import logging
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from cliptrail.config import LEGACY_PATHS
from cliptrail.errors import ImageDecodeError, LegacyFormatError
from cliptrail.imaging import decode_payload
from cliptrail.models import EntryKind
from cliptrail.storage import HistoryStore

logger = logging.getLogger(__name__)

SQLITE_MAGIC = b"SQLite format 3\x00"


@dataclass
class LegacyRecord:
    kind: EntryKind
    content: str
    image_format: str | None = None


def _load_json(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        raise LegacyFormatError(f"{path} is not readable JSON: {exc}") from exc


def _format_name(value) -> str | None:
    return value if isinstance(value, str) and value else None


def read_sqlite_table(path: Path) -> list[LegacyRecord]:
    with path.open("rb") as f:
        if f.read(len(SQLITE_MAGIC)) != SQLITE_MAGIC:
            raise LegacyFormatError(f"{path} is not a SQLite database")
    try:
        conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True)
        try:
            rows = conn.execute(
                "SELECT type, content, image_format FROM clipboard_history ORDER BY timestamp ASC, id ASC"
            ).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise LegacyFormatError(f"{path} has no legacy clipboard_history table: {exc}") from exc

    records = []
    for item_type, content, image_format in rows:
        if item_type not in ("text", "image") or not isinstance(content, str):
            continue
        records.append(LegacyRecord(EntryKind(item_type), content, _format_name(image_format)))
    return records


def read_typed_json(path: Path) -> list[LegacyRecord]:
    data = _load_json(path)
    if not isinstance(data, list):
        raise LegacyFormatError(f"{path} does not hold a list")

    records = []
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            raise LegacyFormatError(f"{path} does not hold typed items")
        item_type = item.get("type", "text")
        if item_type not in ("text", "image"):
            logger.debug("Skipping legacy item of unknown type %r", item_type)
            continue
        meta = item.get("image_meta")
        if not isinstance(meta, dict):
            # absent or malformed metadata; decoding then tries PNG and JPEG
            meta = {}
        records.append(LegacyRecord(EntryKind(item_type), item["content"], _format_name(meta.get("format"))))
    return records


def read_string_json(path: Path) -> list[LegacyRecord]:
    data = _load_json(path)
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise LegacyFormatError(f"{path} does not hold a list of strings")
    return [LegacyRecord(EntryKind.TEXT, item) for item in data]


READERS: tuple[Callable[[Path], list[LegacyRecord]], ...] = (
    read_sqlite_table,
    read_typed_json,
    read_string_json,
)


def read_legacy(path: Path) -> list[LegacyRecord]:
    errors = []
    for reader in READERS:
        try:
            return reader(path)
        except LegacyFormatError as exc:
            errors.append(str(exc))
    raise LegacyFormatError(f"unrecognised history file {path}: " + "; ".join(errors))


def backup_path(path: Path) -> Path:
    candidate = path.with_name(path.name + ".backup")
    n = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.backup.{n}")
        n += 1
    return candidate


def import_legacy(store: HistoryStore, path: str | Path) -> int:
    """Import a legacy history file into ``store``.

    Returns:
        Number of records that produced a stored entry. 0 if the file
        does not exist.

    Raises:
        LegacyFormatError: if no reader understands the file; it is left
            where it is.
    """
    path = Path(path)
    if not path.exists():
        return 0

    records = read_legacy(path)
    imported = 0
    for record in records:
        if record.kind == EntryKind.IMAGE:
            try:
                data = decode_payload(record.content)
            except ImageDecodeError as exc:
                logger.warning("Skipping legacy image: %s", exc)
                continue
            entry = store.insert_image(data, record.image_format)
        else:
            entry = store.insert_text(record.content)
        if entry is not None:
            imported += 1

    target = backup_path(path)
    path.rename(target)
    logger.info("Imported %d of %d legacy records from %s; original kept at %s", imported, len(records), path, target)
    return imported


def migrate_if_present(store: HistoryStore, paths: Iterable[str | Path] = LEGACY_PATHS) -> int:
    """Import every legacy file that exists. Unreadable files are logged and left alone."""
    total = 0
    for path in paths:
        path = Path(path)
        if not path.exists() or Path(store.db_path).resolve() == path.resolve():
            continue
        try:
            total += import_legacy(store, path)
        except LegacyFormatError as exc:
            logger.warning("Legacy history not imported: %s", exc)
    return total
