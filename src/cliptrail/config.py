import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPTRAIL_DATA_DIR", Path.home() / ".local" / "share" / "cliptrail"))
DB_PATH = DATA_DIR / "history.db"
LEGACY_JSON_PATH = DATA_DIR / "history.json"  # pre-SQLite history file
LEGACY_DIR = Path.home() / ".local" / "share" / "clipboard-manager"
LEGACY_PATHS = (LEGACY_JSON_PATH, LEGACY_DIR / "history.json", LEGACY_DIR / "history.db")
IMAGE_DIR = DATA_DIR / "thumbnails"
LOG_PATH = DATA_DIR / "cliptrail.log"
PID_PATH = DATA_DIR / "daemon.pid"

MAX_HISTORY = 50  # entries kept; oldest evicted first
MIN_CAPTURE_LENGTH = 2  # characters, after trimming
IMAGE_COMPARE_PREFIX = 1024  # bytes compared when checking for a new image
PREVIEW_LENGTH = 60  # characters shown in menu items and log lines
LIST_PREVIEW_LENGTH = 80  # characters shown by `cliptrail list`
COMMAND_TIMEOUT = 2.0  # seconds per clipboard utility call
THUMBNAIL_SIZE = (32, 32)  # pixels, for menu icon display

POLL_MODE_NAMES = ("standard", "text-only", "minimal", "passive")


def _parse_menu_display_count() -> int:
    raw = os.environ.get("CLIPTRAIL_MENU_DISPLAY_COUNT")
    if raw is None:
        return 15
    try:
        value = int(raw)
    except ValueError:
        return 15
    return max(5, min(MAX_HISTORY, value))


def _parse_poll_mode() -> str:
    raw = os.environ.get("CLIPTRAIL_POLL_MODE", "").strip().lower()
    if raw in POLL_MODE_NAMES:
        return raw
    return "standard"


MENU_DISPLAY_COUNT = _parse_menu_display_count()
DEFAULT_POLL_MODE = _parse_poll_mode()
