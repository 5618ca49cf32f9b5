"""Snippet extraction and shareable snippet tokens."""

from __future__ import annotations

import base64
import re
import urllib.parse


def extract_code(raw: str, language: str = "python") -> str:
    """Return the body of the first fenced block in ``language``, or ''."""
    pattern = rf"```{re.escape(language)}[ \t]*\n(.*?)```"
    match = re.search(pattern, raw, re.DOTALL)
    return match.group(1) if match else ""


def encode_snippet(text: str) -> str:
    """UTF-8 text to a URL-safe token for playground links."""
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return urllib.parse.quote(encoded, safe="")


def decode_snippet(token: str) -> str:
    """Inverse of encode_snippet; raises ValueError for malformed tokens."""
    try:
        raw = base64.b64decode(urllib.parse.unquote(token), validate=True)
        return raw.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid snippet token: {e}") from e
