"""Content decoding — turn provider file payloads into plain text."""

from __future__ import annotations

import base64
from typing import Any


def decode_base64_content(payload: dict[str, Any]) -> str:
    """Decode a GitHub contents envelope (``{"content": <base64>, ...}``).

    GitHub wraps the base64 body at 60 columns, so embedded newlines are
    accepted.  Bytes that are not valid UTF-8 become U+FFFD so the file is
    kept.
    """
    encoded = payload.get("content")
    if not isinstance(encoded, str):
        raise ValueError("Content payload has no 'content' field")
    return base64.b64decode(encoded).decode("utf-8", errors="replace")


def decode_raw_content(text: str) -> str:
    """GitLab's ``/raw`` endpoint already returns the file body."""
    return text
