import argparse
import logging
import signal
import sys

from cliptrail.clipboard import default_clipboard, restore_entry
from cliptrail.config import DB_PATH, DEFAULT_POLL_MODE, LIST_PREVIEW_LENGTH, LOG_PATH, POLL_MODE_NAMES
from cliptrail.errors import ClipboardError, CliptrailError, LegacyFormatError, StorageUnavailableError
from cliptrail.lifecycle import remove_pid, running_pid, stop_daemon, write_pid
from cliptrail.migrate import import_legacy, migrate_if_present
from cliptrail.models import Entry, ImageEntry, TextEntry
from cliptrail.poller import POLL_MODES, ClipboardPoller
from cliptrail.storage import HistoryStore
from cliptrail.utils import ensure_dirs, truncate_text

logger = logging.getLogger("cliptrail")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(verbose: bool = False, to_file: bool = False) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if to_file:
        ensure_dirs()
        handlers.insert(0, logging.FileHandler(LOG_PATH))
    if verbose:
        level = logging.DEBUG
    elif to_file:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def open_store() -> HistoryStore | None:
    try:
        return HistoryStore(DB_PATH)
    except StorageUnavailableError as exc:
        print(f"Error: {exc}")
        return None


def format_entry_line(number: int, entry: Entry) -> str:
    if isinstance(entry, ImageEntry):
        info = entry.info
        return f"{number:2d}: [IMAGE] {info.format.upper()} {info.width}x{info.height} ({info.byte_size // 1024} KB)"
    return f"{number:2d}: [TEXT] {truncate_text(entry.text, LIST_PREVIEW_LENGTH)}"


def number_to_index(store: HistoryStore, number: int) -> int | None:
    """Map a 1-based newest-first number, as printed by ``list``, to a store index."""
    length = store.length()
    if not 1 <= number <= length:
        return None
    return length - number


def run_poller(mode_name: str) -> int:
    """Run the clipboard poller in the foreground until SIGINT/SIGTERM."""
    pid = running_pid()
    if pid is not None:
        print(f"Clipboard daemon is already running (PID: {pid}). Use 'cliptrail stop' to stop it first.")
        return 1

    store = open_store()
    if store is None:
        return 1
    try:
        clipboard = default_clipboard()
    except ClipboardError as exc:
        print(f"Error: {exc}")
        store.close()
        return 1

    migrate_if_present(store)
    poller = ClipboardPoller(store, clipboard, POLL_MODES[mode_name])

    def _handle_signal(signum, _frame):
        logger.info("Received signal %d, shutting down", signum)
        poller.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handle_signal)

    write_pid()
    print(f"cliptrail started in {mode_name} mode. Press Ctrl+C to stop.")
    if mode_name == "passive":
        print("Use 'cliptrail capture' to capture the current clipboard.")
    try:
        poller.run()
    finally:
        store.close()
        remove_pid()
    return 0


def run_app(mode_name: str) -> int:
    """Run the menu bar app (macOS)."""
    try:
        from cliptrail.app import CliptrailApp
    except ImportError as exc:
        print(f"Error: the menu bar needs macOS with rumps installed ({exc}).")
        print("Use 'cliptrail run' to record history and 'cliptrail list' to view it.")
        return 1

    pid = running_pid()
    if pid is not None:
        print(f"Clipboard daemon is already running (PID: {pid}). Use 'cliptrail stop' to stop it first.")
        return 1
    store = open_store()
    if store is None:
        return 1
    migrate_if_present(store)

    write_pid()
    try:
        CliptrailApp(store, mode=POLL_MODES[mode_name]).run()
    finally:
        store.close()
        remove_pid()
    return 0


def capture() -> int:
    store = open_store()
    if store is None:
        return 1
    try:
        poller = ClipboardPoller(store, default_clipboard())
        result = poller.capture_now()
    except ClipboardError as exc:
        print(f"Error reading clipboard: {exc}")
        return 1
    finally:
        store.close()

    if result.text_entry is not None:
        print(f"Captured: {truncate_text(result.text_entry.text, LIST_PREVIEW_LENGTH)}")
    if result.image_entry is not None:
        info = result.image_entry.info
        print(f"Captured image: {info.format.upper()} {info.width}x{info.height}")
    if result.captured:
        return 0
    if result.text_failed:
        print("Error reading clipboard")
    else:
        print("No new meaningful content found in clipboard")
    return 1


def list_history(limit: int | None = None) -> int:
    store = open_store()
    if store is None:
        return 1
    with store:
        entries = store.newest_first()

    if not entries:
        print("No clipboard history yet.")
        return 0

    print("\nClipboard History (newest first):")
    print("-" * 50)
    shown = entries if limit is None else entries[:limit]
    for number, entry in enumerate(shown, start=1):
        print(format_entry_line(number, entry))
    print("-" * 50)
    print(f"Total items: {len(entries)}")
    return 0


def clear_history() -> int:
    store = open_store()
    if store is None:
        return 1
    with store:
        store.clear(hooks=[lambda: print("Clipboard history cleared.")])
    return 0


def delete_item(number: int) -> int:
    store = open_store()
    if store is None:
        return 1
    with store:
        index = number_to_index(store, number)
        if index is None or not store.remove_at(index):
            print(f"Invalid item number {number}")
            return 1
    print(f"Removed item {number}")
    return 0


def restore_item(number: int) -> int:
    store = open_store()
    if store is None:
        return 1
    with store:
        index = number_to_index(store, number)
        entry = store.get(index) if index is not None else None
        if entry is None:
            print(f"Invalid item number {number}")
            return 1
        try:
            restore_entry(default_clipboard(), entry)
        except CliptrailError as exc:
            print(f"Error restoring item {number}: {exc}")
            return 1
        store.reinsert(entry)
    print(f"Restored item {number} to clipboard")
    return 0


def edit_item(number: int, text: str) -> int:
    store = open_store()
    if store is None:
        return 1
    with store:
        index = number_to_index(store, number)
        entry = store.get(index) if index is not None else None
        if not isinstance(entry, TextEntry):
            print(f"Item {number} is not a text entry")
            return 1
        if store.edit(entry.text, text) is None:
            print("Edit rejected: new text is empty")
            return 1
    print(f"Updated item {number}")
    return 0


def migrate(path: str | None) -> int:
    store = open_store()
    if store is None:
        return 1
    with store:
        try:
            count = import_legacy(store, path) if path else migrate_if_present(store)
        except LegacyFormatError as exc:
            print(f"Error: {exc}")
            return 1
    print(f"Imported {count} items")
    return 0


def check_status() -> int:
    pid = running_pid()
    if pid is not None:
        print(f"cliptrail daemon is running (PID: {pid})")
        return 0
    print("cliptrail daemon is not running")
    print("Start it with: cliptrail run")
    return 1


def stop() -> int:
    pid = stop_daemon()
    if pid is None:
        print("cliptrail daemon is not running")
        return 1
    print(f"Daemon stopped (PID: {pid})")
    return 0


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a whole number") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cliptrail",
        description="cliptrail - clipboard history manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cliptrail run --mode text-only   # poll text only, no image checks
  cliptrail list                   # newest first, numbered
  cliptrail restore 3              # put item 3 back on the clipboard
  cliptrail stop                   # stop the background poller
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command")

    for name, help_text in (("run", "poll the clipboard in the foreground"), ("menubar", "run the menu bar app (macOS)")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--mode", choices=POLL_MODE_NAMES, default=DEFAULT_POLL_MODE, help="polling mode")

    sub.add_parser("capture", help="capture the current clipboard once")
    p = sub.add_parser("list", help="show history, newest first")
    p.add_argument("--limit", type=positive_int, default=None, help="show at most N items")
    sub.add_parser("clear", help="delete all history")
    p = sub.add_parser("delete", help="delete one item")
    p.add_argument("number", type=int, help="item number from 'list'")
    p = sub.add_parser("restore", help="copy one item back to the clipboard")
    p.add_argument("number", type=int, help="item number from 'list'")
    p = sub.add_parser("edit", help="replace the text of one item")
    p.add_argument("number", type=int, help="item number from 'list'")
    p.add_argument("text")
    p = sub.add_parser("migrate", help="import a legacy history file")
    p.add_argument("path", nargs="?", default=None)
    sub.add_parser("status", help="check whether the poller is running")
    sub.add_parser("stop", help="stop the running poller")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    command = args.command or "run"
    mode = getattr(args, "mode", DEFAULT_POLL_MODE)
    setup_logging(verbose=args.verbose, to_file=command in ("run", "menubar"))

    if command == "run":
        sys.exit(run_poller(mode))
    elif command == "menubar":
        sys.exit(run_app(mode))
    elif command == "capture":
        sys.exit(capture())
    elif command == "list":
        sys.exit(list_history(args.limit))
    elif command == "clear":
        sys.exit(clear_history())
    elif command == "delete":
        sys.exit(delete_item(args.number))
    elif command == "restore":
        sys.exit(restore_item(args.number))
    elif command == "edit":
        sys.exit(edit_item(args.number, args.text))
    elif command == "migrate":
        sys.exit(migrate(args.path))
    elif command == "status":
        sys.exit(check_status())
    elif command == "stop":
        sys.exit(stop())


if __name__ == "__main__":
    main()
