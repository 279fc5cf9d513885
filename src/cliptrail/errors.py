"""Exceptions raised across cliptrail."""


class CliptrailError(Exception):
    """Base class for cliptrail errors."""


class StorageUnavailableError(CliptrailError):
    """The history database is not open, was closed, or failed a statement."""


class ClipboardError(CliptrailError):
    """Reading or writing the system clipboard failed."""


class NoImageError(ClipboardError):
    """The clipboard currently holds no image."""


class ImageDecodeError(CliptrailError):
    """Bytes could not be decoded as any supported image format."""


class LegacyFormatError(CliptrailError):
    """A legacy history file matched none of the known layouts."""
