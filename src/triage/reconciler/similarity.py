"""Token-overlap similarity and sender address extraction.

Both sides of every comparison go through the same ``normalize`` step, so
punctuation (including ``@`` and ``.`` inside addresses) never affects the
score beyond token boundaries.
"""

from __future__ import annotations

import re

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lowercase, strip punctuation, and collapse whitespace."""
    text = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def tokens(text: str) -> frozenset[str]:
    """Return the set of normalized tokens in *text* (empty for blank input)."""
    return frozenset(normalize(text).split())


def overlap_coefficient(a: str, b: str) -> float:
    """Score two strings by ``|A & B| / min(|A|, |B|)`` over their token sets.

    Returns 1.0 when both token sets are empty and 0.0 when exactly one is.
    """
    a_tokens = tokens(a)
    b_tokens = tokens(b)

    if not a_tokens and not b_tokens:
        return 1.0
    if not a_tokens or not b_tokens:
        return 0.0

    return len(a_tokens & b_tokens) / min(len(a_tokens), len(b_tokens))


def extract_address(sender: str) -> str:
    """Pull the email address out of a sender string.

    ``"John Doe <john@example.com>"`` -> ``"john@example.com"``.  A bare
    address, or anything without angle brackets, is returned lowercased and
    stripped.
    """
    match = _ANGLE_ADDRESS.search(sender)
    if match:
        return match.group(1).strip().lower()
    return sender.strip().lower()
