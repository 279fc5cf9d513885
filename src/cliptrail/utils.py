import hashlib
from pathlib import Path

from cliptrail.config import DATA_DIR, IMAGE_DIR

ELLIPSIS = "..."


def compute_hash(data: str | bytes) -> str:
    """SHA-256 hex digest; text is hashed as UTF-8, lone surrogates included."""
    if isinstance(data, str):
        data = data.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(data).hexdigest()


def thumbnail_path(payload: str, directory: Path = IMAGE_DIR) -> Path:
    return directory / f"{compute_hash(payload)[:12]}_thumb.png"


def truncate_text(text: str, max_len: int) -> str:
    """Collapse whitespace runs, newlines included, and cap at ``max_len`` characters."""
    flat = " ".join(text.split())
    if len(flat) <= max_len:
        return flat
    if max_len <= len(ELLIPSIS):
        return flat[:max_len]
    return flat[: max_len - len(ELLIPSIS)].rstrip() + ELLIPSIS


def ensure_dirs(*dirs: Path) -> None:
    for directory in dirs or (DATA_DIR, IMAGE_DIR):
        directory.mkdir(parents=True, exist_ok=True)
