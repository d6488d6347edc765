"""Gmail message payload parsing and reply text extraction.

Provides helpers for:
- Decoding the ``payload`` tree of a Gmail ``format="full"`` message into text
- Extracting only the latest reply so announcements skip quoted history
"""

from __future__ import annotations

import base64
import re
from typing import Any

from mailparser_reply import EmailReplyParser  # type: ignore[import-untyped]

_TAG = re.compile(r"<[^>]+>")
_BLANK_RUNS = re.compile(r"\n\s*\n+")


def strip_html(html: str) -> str:
    """Drop tags and collapse the blank-line runs they leave behind."""
    return _BLANK_RUNS.sub("\n\n", _TAG.sub("", html)).strip()


def _decode_part_data(part: dict[str, Any]) -> str:
    data = part.get("body", {}).get("data", "")
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_body_text(payload: dict[str, Any]) -> str:
    """Extract the text body from a Gmail message payload.

    Walks all parts depth-first.  Returns the first ``text/plain`` part; if
    there is none, falls back to the first ``text/html`` part with tags
    stripped.

    Args:
        payload: The ``payload`` dict of a Gmail API message resource.

    Returns:
        The decoded body text, or an empty string if no text part exists.
    """
    text_plain = ""
    text_html = ""

    stack = [payload]
    while stack:
        part = stack.pop(0)
        mime_type = part.get("mimeType", "")
        if mime_type == "text/plain" and not text_plain:
            text_plain = _decode_part_data(part)
        elif mime_type == "text/html" and not text_html:
            text_html = _decode_part_data(part)
        stack[0:0] = part.get("parts", [])

    if text_plain:
        return text_plain
    if text_html:
        return strip_html(text_html)
    return ""


def header_map(payload: dict[str, Any]) -> dict[str, str]:
    """Return a payload's headers keyed by name (later duplicates win)."""
    return {h["name"]: h["value"] for h in payload.get("headers", [])}


def extract_latest_reply(full_body: str) -> str:
    """Extract only the latest reply text from an email body.

    Uses ``mail-parser-reply`` to strip quoted content, signature blocks,
    and forwarded message headers.  If the parser returns nothing (the whole
    message looked quoted), the original body is returned.
    """
    parsed: str = EmailReplyParser(languages=["en"]).parse_reply(text=full_body)
    if not parsed or not parsed.strip():
        return full_body
    return parsed
