import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import Protocol

from cliptrail.config import COMMAND_TIMEOUT
from cliptrail.errors import ClipboardError, NoImageError
from cliptrail.imaging import convert_to_png
from cliptrail.models import Entry, ImageEntry

logger = logging.getLogger(__name__)

# Clipboard targets we know how to store, in the order they are offered
IMAGE_MIME_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/bmp": "bmp",
}


class ClipboardSource(Protocol):
    def read_text(self) -> str: ...

    def read_image(self) -> tuple[bytes, str]: ...

    def write_text(self, text: str) -> None: ...

    def write_image(self, data: bytes, image_format: str) -> None: ...


@dataclass(frozen=True)
class CommandBackend:
    name: str
    read_text: tuple[str, ...]
    write_text: tuple[str, ...]
    list_types: tuple[str, ...] | None = None
    read_type: tuple[str, ...] | None = None  # "{mime}" is substituted
    write_type: tuple[str, ...] | None = None


WL_CLIPBOARD = CommandBackend(
    name="wl-clipboard",
    read_text=("wl-paste", "--no-newline"),
    write_text=("wl-copy",),
    list_types=("wl-paste", "--list-types"),
    read_type=("wl-paste", "--type", "{mime}"),
    write_type=("wl-copy", "--type", "{mime}"),
)
XCLIP = CommandBackend(
    name="xclip",
    read_text=("xclip", "-selection", "clipboard", "-o"),
    write_text=("xclip", "-selection", "clipboard", "-i"),
    list_types=("xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"),
    read_type=("xclip", "-selection", "clipboard", "-t", "{mime}", "-o"),
    write_type=("xclip", "-selection", "clipboard", "-t", "{mime}", "-i"),
)
XSEL = CommandBackend(
    name="xsel",
    read_text=("xsel", "--clipboard", "--output"),
    write_text=("xsel", "--clipboard", "--input"),
)


def detect_backend() -> CommandBackend:
    """Return the first clipboard utility available for this session."""
    if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-paste") and shutil.which("wl-copy"):
        return WL_CLIPBOARD
    if shutil.which("xclip"):
        return XCLIP
    if shutil.which("xsel"):
        return XSEL
    raise ClipboardError("No clipboard utility found. Install one of: wl-clipboard, xclip, or xsel.")


def _fill(command: tuple[str, ...], mime: str) -> list[str]:
    return [part.replace("{mime}", mime) for part in command]


class CommandClipboard:
    """Clipboard access through wl-clipboard, xclip or xsel subprocesses."""

    def __init__(self, backend: CommandBackend | None = None, timeout: float = COMMAND_TIMEOUT):
        self._backend = backend or detect_backend()
        self._timeout = timeout

    @property
    def backend(self) -> CommandBackend:
        return self._backend

    def _run(self, command: list[str] | tuple[str, ...]) -> bytes:
        try:
            result = subprocess.run(list(command), capture_output=True, timeout=self._timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ClipboardError(f"{command[0]} failed: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ClipboardError(f"{command[0]} exited with {result.returncode}: {stderr}")
        return result.stdout

    def _feed(self, command: list[str] | tuple[str, ...], data: bytes) -> None:
        # xclip and wl-copy stay alive as the selection owner, so their
        # output must not be piped back to us
        try:
            result = subprocess.run(
                list(command),
                input=data,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ClipboardError(f"{command[0]} failed: {exc}") from exc
        if result.returncode != 0:
            raise ClipboardError(f"{command[0]} exited with {result.returncode}")

    def read_text(self) -> str:
        # invalid UTF-8 survives as lone surrogates and is rejected by the store
        return self._run(self._backend.read_text).decode("utf-8", errors="surrogateescape")

    def available_types(self) -> list[str]:
        if self._backend.list_types is None:
            return []
        output = self._run(self._backend.list_types).decode("utf-8", errors="replace")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def read_image(self) -> tuple[bytes, str]:
        if self._backend.read_type is None:
            raise NoImageError(f"{self._backend.name} cannot read images")

        mime = next((t for t in self.available_types() if t in IMAGE_MIME_TYPES), None)
        if mime is None:
            raise NoImageError("no supported image format found in clipboard")

        data = self._run(_fill(self._backend.read_type, mime))
        if not data:
            raise NoImageError("empty image data")
        return data, IMAGE_MIME_TYPES[mime]

    def write_text(self, text: str) -> None:
        self._feed(self._backend.write_text, text.encode("utf-8"))

    def write_image(self, data: bytes, image_format: str) -> None:
        if self._backend.write_type is None:
            raise ClipboardError(f"{self._backend.name} cannot write images")
        self._feed(_fill(self._backend.write_type, f"image/{image_format}"), data)


class PasteboardClipboard:
    """macOS general pasteboard via PyObjC."""

    def __init__(self):
        from AppKit import NSPasteboard

        self._pasteboard = NSPasteboard.generalPasteboard()

    def change_count(self) -> int:
        return self._pasteboard.changeCount()

    def read_text(self) -> str:
        from AppKit import NSPasteboardTypeString

        text = self._pasteboard.stringForType_(NSPasteboardTypeString)
        return str(text) if text else ""

    def read_image(self) -> tuple[bytes, str]:
        from AppKit import NSPasteboardTypePNG, NSPasteboardTypeTIFF

        for img_type, image_format in ((NSPasteboardTypePNG, "png"), (NSPasteboardTypeTIFF, "tiff")):
            data = self._pasteboard.dataForType_(img_type)
            if data is not None and len(data):
                return bytes(data), image_format
        raise NoImageError("no image on pasteboard")

    def write_text(self, text: str) -> None:
        from AppKit import NSPasteboardTypeString

        self._pasteboard.clearContents()
        if not self._pasteboard.setString_forType_(text, NSPasteboardTypeString):
            raise ClipboardError("pasteboard rejected text")

    def write_image(self, data: bytes, image_format: str) -> None:
        from AppKit import NSPasteboardTypePNG, NSPasteboardTypeTIFF
        from Foundation import NSData

        if image_format == "tiff":
            img_type = NSPasteboardTypeTIFF
        else:
            img_type = NSPasteboardTypePNG
            if image_format != "png":
                data = convert_to_png(data)

        ns_data = NSData.dataWithBytes_length_(data, len(data))
        self._pasteboard.clearContents()
        if not self._pasteboard.setData_forType_(ns_data, img_type):
            raise ClipboardError("pasteboard rejected image")


def default_clipboard() -> ClipboardSource:
    if sys.platform == "darwin":
        return PasteboardClipboard()
    return CommandClipboard()


def restore_entry(clipboard: ClipboardSource, entry: Entry) -> None:
    """Put a stored entry back on the system clipboard."""
    if isinstance(entry, ImageEntry):
        clipboard.write_image(entry.image_bytes(), entry.info.format)
        logger.info("Restored %s image to clipboard (%dx%d)", entry.info.format.upper(), entry.info.width, entry.info.height)
    else:
        clipboard.write_text(entry.text)
        logger.info("Restored text to clipboard: %.50s", entry.text)
