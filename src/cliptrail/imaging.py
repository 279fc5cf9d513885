import base64
import binascii
import logging
from io import BytesIO
from pathlib import Path

from PIL import Image

from cliptrail.errors import ImageDecodeError
from cliptrail.models import ImageInfo

logger = logging.getLogger(__name__)

# Clipboard MIME subtype -> Pillow format name
PIL_FORMATS = {
    "png": "PNG",
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "gif": "GIF",
    "bmp": "BMP",
    "tiff": "TIFF",
    "webp": "WEBP",
}
FALLBACK_FORMATS = ("png", "jpeg")


def _candidate_formats(declared_format: str | None) -> list[str]:
    candidates = []
    declared = (declared_format or "").strip().lower()
    if declared in PIL_FORMATS:
        candidates.append(declared)
    for fmt in FALLBACK_FORMATS:
        if PIL_FORMATS[fmt] not in (PIL_FORMATS[c] for c in candidates):
            candidates.append(fmt)
    return candidates


def _try_decode(data: bytes, fmt: str) -> tuple[int, int] | None:
    try:
        with Image.open(BytesIO(data), formats=[PIL_FORMATS[fmt]]) as img:
            img.load()
            return img.size
    except Exception:
        return None


def decode_image(data: bytes, declared_format: str | None = None) -> ImageInfo:
    """Decode image bytes and describe them.

    The declared format is tried first, then PNG, then JPEG. The returned
    format is the one that actually decoded, lowercased Pillow naming
    (``"jpg"`` comes back as ``"jpeg"``).

    Raises:
        ImageDecodeError: if data is empty or no candidate format decodes it.
    """
    if not data:
        raise ImageDecodeError("empty image data")

    for fmt in _candidate_formats(declared_format):
        size = _try_decode(data, fmt)
        if size is not None:
            width, height = size
            return ImageInfo(
                format=PIL_FORMATS[fmt].lower(),
                width=width,
                height=height,
                byte_size=len(data),
            )

    raise ImageDecodeError(f"could not decode {len(data)} bytes (declared format: {declared_format or 'unknown'})")


def encode_payload(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_payload(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"invalid base64 payload: {exc}") from exc


def convert_to_png(data: bytes) -> bytes:
    try:
        with Image.open(BytesIO(data)) as img:
            buf = BytesIO()
            img.save(buf, format="PNG")
            return buf.getvalue()
    except Exception as exc:
        raise ImageDecodeError(f"cannot convert image to PNG: {exc}") from exc


def create_thumbnail(data: bytes, thumb_path: str | Path, size: tuple[int, int] = (32, 32)) -> bool:
    """Write a PNG thumbnail of an encoded image.

    Args:
        data: Encoded image bytes
        thumb_path: Path to save the thumbnail
        size: Bounding box in pixels (width, height); aspect ratio is kept

    Returns:
        True if the thumbnail was written, False otherwise
    """
    try:
        with Image.open(BytesIO(data)) as img:
            img.thumbnail(size)
            if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
                img = img.convert("RGBA")
            img.save(thumb_path, format="PNG")
        return True
    except Exception:
        logger.debug("Thumbnail creation failed for %s", thumb_path, exc_info=True)
        return False
