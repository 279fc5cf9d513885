import logging

import rumps

from cliptrail import __version__
from cliptrail.clipboard import ClipboardSource, default_clipboard, restore_entry
from cliptrail.config import MENU_DISPLAY_COUNT, THUMBNAIL_SIZE
from cliptrail.errors import CliptrailError
from cliptrail.imaging import create_thumbnail
from cliptrail.menu import MenuItemSpec, compute_menu_specs
from cliptrail.models import ImageEntry
from cliptrail.poller import POLL_MODES, ClipboardPoller, PollMode
from cliptrail.storage import HistoryStore
from cliptrail.utils import ensure_dirs, thumbnail_path

logger = logging.getLogger(__name__)

ENTRY_KEY_PREFIX = "cliptrail_entry_"
REFRESH_INTERVAL = 1  # seconds between checks for poller changes


class CliptrailApp(rumps.App):
    """Menu bar history viewer.

    The poller runs on its own thread; it only raises a flag, and the menu
    is rebuilt on the main thread by a rumps timer.
    """

    def __init__(self, store: HistoryStore, clipboard: ClipboardSource | None = None, mode: PollMode | None = None):
        super().__init__("cliptrail", title="📋", quit_button=None)
        self._init_app(store, clipboard or default_clipboard(), mode or POLL_MODES["standard"])

    def _init_app(self, store: HistoryStore, clipboard: ClipboardSource, mode: PollMode) -> None:
        """Everything but the rumps base-class setup, so it can run against a stub app."""
        ensure_dirs()
        self._store = store
        self._clipboard = clipboard
        self._poller = ClipboardPoller(store, clipboard, mode, on_change=self._mark_dirty)
        self._dirty = False
        self._entry_ids: dict[str, int] = {}
        self._build_menu()
        self._poller.start()

    def _mark_dirty(self) -> None:
        self._dirty = True

    def _build_menu(self) -> None:
        self._entry_ids.clear()
        specs = compute_menu_specs(
            self._store.snapshot(),
            on_entry=self._on_entry_click,
            on_clear=self._on_clear,
            on_quit=self._on_quit,
            title=f"cliptrail v{__version__}",
            limit=MENU_DISPLAY_COUNT,
            icon_for=self._ensure_thumbnail,
        )
        self.menu.clear()
        self.menu = [self._to_menu_item(spec) for spec in specs]

    def _to_menu_item(self, spec: MenuItemSpec | None) -> rumps.MenuItem | None:
        if spec is None:
            return None

        icon_options = {"icon": spec.icon, "dimensions": spec.dimensions, "template": spec.template}
        item = rumps.MenuItem(
            spec.title,
            callback=spec.callback,
            **{name: value for name, value in icon_options.items() if value is not None},
        )
        if spec.entry_id is not None:
            key = f"{ENTRY_KEY_PREFIX}{spec.entry_id}"
            item._id = key
            self._entry_ids[key] = spec.entry_id
        return item

    def _ensure_thumbnail(self, entry: ImageEntry) -> str | None:
        thumb_path = thumbnail_path(entry.data_b64)
        if thumb_path.exists() or create_thumbnail(entry.image_bytes(), thumb_path, THUMBNAIL_SIZE):
            return str(thumb_path)
        return None

    def _refresh_menu(self) -> None:
        self._dirty = False
        self._build_menu()

    @rumps.timer(REFRESH_INTERVAL)
    def _refresh_if_dirty(self, _sender) -> None:
        if self._dirty:
            self._refresh_menu()

    def _on_entry_click(self, sender) -> None:
        entry_id = self._entry_ids.get(getattr(sender, "_id", ""))
        if entry_id is None:
            return

        entry = next((e for e in self._store.snapshot() if e.id == entry_id), None)
        if entry is None:
            return

        # Option-click deletes instead of restoring
        try:
            from AppKit import NSAlternateKeyMask, NSEvent

            if NSEvent.modifierFlags() & NSAlternateKeyMask:
                self._store.remove_entry(entry_id)
                self._refresh_menu()
                return
        except ImportError:
            pass

        try:
            restore_entry(self._clipboard, entry)
            self._store.reinsert(entry)
        except CliptrailError:
            logger.exception("Error copying entry to clipboard")
            rumps.notification("cliptrail", "", "Could not copy to clipboard", sound=False)
            return

        self._refresh_menu()
        rumps.notification("cliptrail", "", "Copied to clipboard", sound=False)

    def _on_clear(self, _sender) -> None:
        if rumps.alert("cliptrail", "Clear all clipboard history?", ok="Clear", cancel="Cancel"):
            self._store.clear(hooks=[self._refresh_menu])

    def _on_quit(self, _sender) -> None:
        self._poller.stop()
        self._store.close()
        rumps.quit_application()
