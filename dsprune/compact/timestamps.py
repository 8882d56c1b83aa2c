"""Millisecond timestamp arithmetic for purge-range boundaries.

The repository's range purge takes inclusive ``startDT``/``endDT`` bounds
written as ``YYYY-MM-DDTHH:MM:SS.fffZ``. To exclude a version from a range
the bound is nudged one millisecond past its creation time.

Only three fractional digits take part: anything finer in the source text
is truncated, never rounded, so a nudged bound lands exactly one unit away
from the repository's own view of the version.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"(Z|[+-]\d{2}:?\d{2})?$"
)

_ONE_SECOND = timedelta(seconds=1)


class MalformedTimestamp(ValueError):
    """Raised when a version's creation time cannot be parsed or formatted."""


def _parse_offset(text: str | None) -> timezone:
    if not text or text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_timestamp(text: str) -> datetime:
    """Parse repository timestamp text into a UTC datetime.

    Sub-second precision is truncated to milliseconds. Naive input is
    taken as UTC.
    """
    if not isinstance(text, str):
        raise MalformedTimestamp(f"Timestamp must be a string, got {type(text).__name__}")
    match = _TIMESTAMP_RE.match(text.strip())
    if not match:
        raise MalformedTimestamp(f"Unrecognised timestamp: {text!r}")

    year, month, day, hour, minute, second, fraction, offset = match.groups()
    millis = int((fraction or "")[:3].ljust(3, "0"))
    try:
        dt = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second),
            millis * 1000,
            tzinfo=_parse_offset(offset),
        )
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError) as exc:
        raise MalformedTimestamp(f"Invalid timestamp {text!r}: {exc}") from exc


def format_timestamp(created_at: str, nudge: int = 0) -> str:
    """Format *created_at* for a purge bound, optionally nudged one unit.

    ``nudge`` is ``+1`` (one millisecond later), ``-1`` (one millisecond
    earlier) or ``0`` (unchanged). The fraction rolls over at ``999``/``000``
    and carries into the whole-second component.
    """
    if nudge not in (-1, 0, 1):
        raise ValueError(f"nudge must be -1, 0 or +1, got {nudge!r}")

    dt = parse_timestamp(created_at)
    millis = dt.microsecond // 1000
    whole = dt.replace(microsecond=0)

    try:
        if nudge == 1:
            if millis == 999:
                whole += _ONE_SECOND
                millis = 0
            else:
                millis += 1
        elif nudge == -1:
            if millis == 0:
                whole -= _ONE_SECOND
                millis = 999
            else:
                millis -= 1
    except OverflowError as exc:
        raise MalformedTimestamp(
            f"Timestamp {created_at!r} cannot be nudged by {nudge:+d}"
        ) from exc

    stamp = whole.replace(tzinfo=None).isoformat(timespec="seconds")
    return f"{stamp}.{millis:03d}Z"
