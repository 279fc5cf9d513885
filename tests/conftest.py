from io import BytesIO

import pytest
from PIL import Image

from cliptrail.errors import ClipboardError, NoImageError
from cliptrail.storage import HistoryStore


@pytest.fixture
def store():
    s = HistoryStore(db_path=":memory:")
    yield s
    s.close()


@pytest.fixture
def make_image():
    """Factory fixture returning encoded image bytes produced by Pillow."""

    def _make_image(width: int = 100, height: int = 100, fmt: str = "PNG", color=(255, 0, 0)) -> bytes:
        buf = BytesIO()
        mode = "RGBA" if fmt == "PNG" else "RGB"
        Image.new(mode, (width, height), color).save(buf, format=fmt)
        return buf.getvalue()

    return _make_image


class FakeClipboard:
    """In-memory ClipboardSource. Set ``text``/``image`` or queue errors."""

    def __init__(self, text: str = "", image: tuple[bytes, str] | None = None):
        self.text = text
        self.image = image
        self.text_errors = 0
        self.image_error: Exception | None = None
        self.text_reads = 0
        self.image_reads = 0
        self.written: list[tuple] = []

    def read_text(self) -> str:
        self.text_reads += 1
        if self.text_errors:
            self.text_errors -= 1
            raise ClipboardError("clipboard busy")
        return self.text

    def read_image(self) -> tuple[bytes, str]:
        self.image_reads += 1
        if self.image_error is not None:
            raise self.image_error
        if self.image is None:
            raise NoImageError("no image")
        return self.image

    def write_text(self, text: str) -> None:
        self.written.append(("text", text))
        self.text = text

    def write_image(self, data: bytes, image_format: str) -> None:
        self.written.append(("image", data, image_format))
        self.image = (data, image_format)


@pytest.fixture
def clipboard():
    return FakeClipboard()
