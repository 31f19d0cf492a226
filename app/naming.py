import re
import time
from collections.abc import Callable

_DISALLOWED = re.compile(r"[^A-Za-z0-9.\-_\s]")
_WHITESPACE = re.compile(r"\s+")

# keeps "{13-digit ms}-{stem}.{ext}" far below the 255 byte name limit
MAX_STEM_LENGTH = 120
MAX_EXTENSION_LENGTH = 16


def sanitize_file_name(name: str) -> str:
    stripped = _DISALLOWED.sub("", name)
    return _WHITESPACE.sub("-", stripped).lower()


class NameGenerator:
    """Same millisecond plus same name gives the same key."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def generate(self, declared_name: str) -> str:
        sanitized = sanitize_file_name(declared_name)
        stem, dot, extension = sanitized.rpartition(".")
        if not dot:
            stem, extension = sanitized, ""
        stem = stem[:MAX_STEM_LENGTH] or "file"
        extension = extension[:MAX_EXTENSION_LENGTH]

        timestamp = int(self._clock() * 1000)
        if extension:
            return f"{timestamp}-{stem}.{extension}"
        return f"{timestamp}-{stem}"
