"""Shared utilities: duration and timestamp parsing for freeze windows."""

import re
from datetime import UTC, datetime, timedelta

from freezebot.errors import ValidationError

# 30m, 2h, 1d, 45s (one unit, integer amount)
_SHORT_DURATION_RE = re.compile(r"^(\d+)\s*([smhd])$")
# ISO 8601 subset: P[nD][T[nH][nM][nS]]
_ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(text: str) -> timedelta:
    """Parse a freeze duration.

    Accepts a single-unit shorthand (45s, 30m, 2h, 1d) or an ISO 8601
    duration with days and time parts (PT2H30M, P1D, P1DT12H).

    Raises:
        ValidationError: empty, malformed or zero-length duration.
    """
    value = (text or "").strip()
    if not value:
        raise ValidationError("Empty duration")

    short = _SHORT_DURATION_RE.match(value.lower())
    if short:
        delta = timedelta(**{_UNITS[short.group(2)]: int(short.group(1))})
    else:
        iso = _ISO_DURATION_RE.match(value.upper())
        if not iso or value.upper() in ("P", "PT") or value.upper().endswith("T"):
            raise ValidationError(f"Invalid duration: {text!r} (use e.g. 30m, 2h, 1d or PT2H30M)")
        parts = {k: int(v) for k, v in iso.groupdict().items() if v is not None}
        delta = timedelta(**parts)

    if delta <= timedelta(0):
        raise ValidationError(f"Duration must be positive: {text!r}")
    return delta


def parse_datetime(text: str) -> datetime:
    """Parse an ISO 8601 timestamp ("Z" allowed). Naive values are taken as UTC."""
    value = (text or "").strip()
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {text!r} (use ISO 8601)") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
