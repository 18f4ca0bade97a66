"""Text helpers for training payloads."""

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08]")


def sanitize_text(text: str | None) -> str:
    """Replace low control characters (0x00-0x08) with spaces."""
    if not text:
        return ""
    return _CONTROL_CHARS.sub(" ", text)
