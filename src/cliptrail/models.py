import base64
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EntryKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class ImageInfo:
    format: str
    width: int
    height: int
    byte_size: int


@dataclass(frozen=True)
class TextEntry:
    id: int | None
    text: str
    captured_at: datetime

    @property
    def kind(self) -> EntryKind:
        return EntryKind.TEXT

    @property
    def payload(self) -> str:
        return self.text


@dataclass(frozen=True)
class ImageEntry:
    id: int | None
    data_b64: str
    info: ImageInfo
    captured_at: datetime

    @property
    def kind(self) -> EntryKind:
        return EntryKind.IMAGE

    @property
    def payload(self) -> str:
        return self.data_b64

    def image_bytes(self) -> bytes:
        return base64.b64decode(self.data_b64)


Entry = TextEntry | ImageEntry
