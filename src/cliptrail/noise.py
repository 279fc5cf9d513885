"""Text normalisation and the clipboard noise heuristic.

The noise filter is best-effort: it drops short strings that are almost
always tooling artifacts rather than something a person copied. Letting
some noise through is acceptable; it only keeps the history tidy.
"""

from cliptrail.config import MIN_CAPTURE_LENGTH

NOISE_MIN_LENGTH = 3
NOISE_MAX_LENGTH = 50  # longer text is never treated as an artifact
NOISE_PATTERNS = (
    'signal"',
    'syscall"',
    'time"',
    "import",
    "package",
    "func",
)


def normalize_text(text: str) -> str:
    return text.strip()


def is_valid_text(text: str) -> bool:
    """True when text is non-empty after trimming and encodes as UTF-8."""
    if not text or not text.strip():
        return False
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        # lone surrogates, e.g. from a mis-decoded selection
        return False
    return True


def is_system_noise(text: str) -> bool:
    if len(text) < NOISE_MIN_LENGTH:
        return True
    if len(text) >= NOISE_MAX_LENGTH:
        return False
    return any(pattern in text for pattern in NOISE_PATTERNS)


def is_capturable(text: str) -> bool:
    """Whether normalised clipboard text is worth recording."""
    return len(text) >= MIN_CAPTURE_LENGTH and not is_system_noise(text)

