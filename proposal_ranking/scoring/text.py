# CUI // SP-PROPIN
"""Tokenization and date helpers shared by the scorers."""

import re
from datetime import datetime, timezone

_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def normalize(text):
    """Lower-case and strip; ``None`` becomes an empty string.

    Non-string scalars (a contract number sent as a JSON number) are
    compared by their string form.
    """
    if text is None:
        return ""
    return str(text).strip().lower()


def whitespace_tokens(text):
    """Lower-cased whitespace tokens, short tokens included."""
    return normalize(text).split()


def query_tokens(text, min_length=4):
    """Lower-cased whitespace tokens of at least ``min_length`` characters."""
    return [t for t in whitespace_tokens(text) if len(t) >= min_length]


def token_coverage(tokens, text):
    """Fraction of ``tokens`` appearing as substrings of ``text``.

    ``text`` is lower-cased here; tokens are expected lower-cased already.
    """
    if not tokens:
        return 0.0
    haystack = (text or "").lower()
    return sum(1 for t in tokens if t in haystack) / len(tokens)


def parse_date(value):
    """Parse an ISO-8601 date or timestamp into a naive UTC datetime.

    Returns None for empty or unparseable values.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    value = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    # Offset timestamps, e.g. isoformat() output "2026-10-10T00:00:00+00:00"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utcnow():
    """Current UTC time as a naive datetime, comparable with parse_date()."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def leading_int(value):
    """Leading integer of a string (``"3"``, ``" 12a"``), or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = re.match(r"\s*([+-]?\d+)", str(value))
    return int(match.group(1)) if match else None
