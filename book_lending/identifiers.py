"""Book identifier helpers.

Identifiers are ISBNs or magazine JAN codes. They arrive with or without
hyphens, so every comparison goes through :func:`normalize` first.
"""

from typing import Optional

MAGAZINE_PREFIX = "491"
JAN_LENGTH = 13


def normalize(raw: Optional[str]) -> str:
    """Remove hyphens and surrounding whitespace."""
    if raw is None:
        return ""
    return raw.replace("-", "").strip()


def same_identifier(left: Optional[str], right: Optional[str]) -> bool:
    return normalize(left) == normalize(right)


def is_magazine_code(code: Optional[str]) -> bool:
    """True for 13-digit JAN codes carrying the Japanese magazine prefix."""
    s = normalize(code)
    return len(s) == JAN_LENGTH and s.startswith(MAGAZINE_PREFIX)
