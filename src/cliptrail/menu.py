"""Menu layout for the history viewer, kept free of any GUI toolkit."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from cliptrail.config import MENU_DISPLAY_COUNT, PREVIEW_LENGTH
from cliptrail.models import Entry, ImageEntry
from cliptrail.utils import truncate_text


@dataclass
class MenuItemSpec:
    """One menu row; a ``None`` in a spec list stands for a separator."""

    title: str
    callback: Callable | None = None
    icon: str | None = None
    dimensions: tuple[int, int] | None = None
    template: bool | None = None
    entry_id: int | None = None


def entry_preview(entry: Entry, max_len: int = PREVIEW_LENGTH) -> str:
    if isinstance(entry, ImageEntry):
        info = entry.info
        if info.width > 0:
            return f"[Image: {info.width}x{info.height}]"
        return "[Image]"
    return truncate_text(entry.text, max_len)


def compute_menu_specs(
    snapshot: Sequence[Entry],
    on_entry: Callable | None = None,
    on_clear: Callable | None = None,
    on_quit: Callable | None = None,
    title: str = "Clipboard History",
    limit: int = MENU_DISPLAY_COUNT,
    icon_for: Callable[[ImageEntry], str | None] | None = None,
) -> list[MenuItemSpec | None]:
    """Build menu specs from a store snapshot (oldest first), newest at the top.

    ``None`` marks a separator. ``icon_for`` may supply a thumbnail path for
    image entries.
    """
    specs: list[MenuItemSpec | None] = [
        MenuItemSpec(f"{title} ({len(snapshot)} items)"),
        None,
    ]

    newest = list(reversed(snapshot))[:limit]
    if not newest:
        specs.append(MenuItemSpec("(No clipboard history)"))
    for entry in newest:
        spec = MenuItemSpec(entry_preview(entry), callback=on_entry, entry_id=entry.id)
        if isinstance(entry, ImageEntry) and icon_for is not None:
            thumb_path = icon_for(entry)
            if thumb_path:
                spec.icon = thumb_path
                spec.dimensions = (32, 32)
                spec.template = False
        specs.append(spec)

    specs.extend([
        None,
        MenuItemSpec("Clear History", callback=on_clear),
        None,
        MenuItemSpec("Quit", callback=on_quit),
    ])
    return specs

