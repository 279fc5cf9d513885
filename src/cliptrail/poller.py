import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from cliptrail.clipboard import ClipboardSource
from cliptrail.config import IMAGE_COMPARE_PREFIX, PREVIEW_LENGTH
from cliptrail.errors import ClipboardError, NoImageError, StorageUnavailableError
from cliptrail.models import ImageEntry, TextEntry
from cliptrail.noise import is_capturable, normalize_text
from cliptrail.storage import HistoryStore
from cliptrail.utils import truncate_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollMode:
    name: str
    interval: float  # seconds between successful samples
    error_interval: float  # after a failed text read
    backoff_interval: float  # once max_errors consecutive reads failed
    max_errors: int
    image_every: int = 0  # check images every Nth iteration; 0 never
    sleep_first: bool = False
    sampling: bool = True


POLL_MODES = {
    "standard": PollMode("standard", 2.0, 3.0, 10.0, 5, image_every=3),
    "text-only": PollMode("text-only", 3.0, 5.0, 15.0, 5),
    "minimal": PollMode("minimal", 10.0, 10.0, 30.0, 3, sleep_first=True),
    "passive": PollMode("passive", 0.0, 0.0, 0.0, 0, sampling=False),
}


@dataclass
class PollResult:
    text_entry: TextEntry | None = None
    image_entry: ImageEntry | None = None
    text_failed: bool = False

    @property
    def captured(self) -> bool:
        return self.text_entry is not None or self.image_entry is not None


class ClipboardPoller:
    """Samples the clipboard on a fixed schedule and feeds the history store.

    Read errors are transient: they are counted, logged, and slow the loop
    down, but never stop it. If the store becomes unavailable the poller
    keeps sampling and stops inserting until it is restarted.
    """

    def __init__(
        self,
        store: HistoryStore,
        clipboard: ClipboardSource,
        mode: PollMode = POLL_MODES["standard"],
        on_change: Callable[[], None] | None = None,
    ):
        self._store = store
        self._clipboard = clipboard
        self._mode = mode
        self._on_change = on_change
        self._last_text: str | None = None
        self._last_image: bytes | None = None
        self._errors = 0
        self._iteration = 0
        self._storage_lost = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def mode(self) -> PollMode:
        return self._mode

    @property
    def error_count(self) -> int:
        return self._errors

    @property
    def storage_lost(self) -> bool:
        return self._storage_lost

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self, include_image: bool | None = None) -> PollResult:
        self._iteration += 1
        if include_image is None:
            every = self._mode.image_every
            include_image = every > 0 and self._iteration % every == 0

        result = PollResult()
        try:
            text = self._clipboard.read_text()
        except ClipboardError as exc:
            result.text_failed = True
            self._errors += 1
            if self._errors <= self._mode.max_errors:
                logger.warning("Clipboard text read error (%d/%d): %s", self._errors, self._mode.max_errors, exc)
            if self._errors == self._mode.max_errors:
                logger.warning("Too many clipboard errors, reducing check frequency")
        else:
            self._errors = 0
            text = normalize_text(text)
            if text != self._last_text and is_capturable(text):
                result.text_entry = self._store_text(text)
            self._last_text = text

        if include_image:
            result.image_entry = self._poll_image()

        if result.captured and self._on_change:
            try:
                self._on_change()
            except Exception:
                logger.exception("Change callback failed")
        return result

    def capture_now(self) -> PollResult:
        """One forced iteration that ignores what was seen before."""
        self._last_text = None
        self._last_image = None
        return self.poll_once(include_image=True)

    def next_delay(self, result: PollResult) -> float:
        if result.text_failed and self._errors >= self._mode.max_errors:
            return self._mode.backoff_interval
        if result.text_failed:
            return self._mode.error_interval
        return self._mode.interval

    def run(self) -> None:
        """Poll until ``stop()`` is called."""
        mode = self._mode
        logger.info("Clipboard polling started (%s mode)", mode.name)
        if not mode.sampling:
            self._stop_event.wait()
            logger.info("Clipboard polling stopped")
            return

        delay = mode.interval if mode.sleep_first else 0.0
        while not self._stop_event.wait(delay):
            try:
                result = self.poll_once()
            except Exception:
                logger.exception("Error polling clipboard")
                delay = mode.error_interval
                continue
            delay = self.next_delay(result)
        logger.info("Clipboard polling stopped")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="cliptrail-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def _is_new_image(self, data: bytes) -> bool:
        # cheap check; the store compares full payloads
        last = self._last_image
        if not last or len(last) != len(data):
            return True
        n = min(len(data), IMAGE_COMPARE_PREFIX)
        return data[:n] != last[:n]

    def _poll_image(self) -> ImageEntry | None:
        try:
            data, image_format = self._clipboard.read_image()
        except NoImageError:
            return None
        except ClipboardError as exc:
            logger.debug("Clipboard image read error: %s", exc)
            return None

        self._errors = 0
        if not self._is_new_image(data):
            return None
        self._last_image = data
        return self._store_image(data, image_format)

    def _store_text(self, text: str) -> TextEntry | None:
        if self._storage_lost:
            return None
        try:
            entry = self._store.insert_text(text)
        except StorageUnavailableError as exc:
            self._mark_storage_lost(exc)
            return None
        if entry is not None:
            logger.info("Text copied: %s", truncate_text(text, PREVIEW_LENGTH))
        return entry

    def _store_image(self, data: bytes, image_format: str) -> ImageEntry | None:
        if self._storage_lost:
            return None
        try:
            entry = self._store.insert_image(data, image_format)
        except StorageUnavailableError as exc:
            self._mark_storage_lost(exc)
            return None
        if entry is not None:
            logger.info("Image copied: %s (%d KB)", entry.info.format, entry.info.byte_size // 1024)
        return entry

    def _mark_storage_lost(self, exc: Exception) -> None:
        self._storage_lost = True
        logger.error("History storage unavailable, new clipboard entries will not be saved: %s", exc)
