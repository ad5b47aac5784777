from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return current time as tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse RFC3339 timestamp string into tz-aware UTC datetime.

    Accepts strings like:
      - 2025-01-01T12:34:56Z
      - 2025-01-01T12:34:56.123Z
      - 2025-01-01T12:34:56+09:00
      - 2025-01-01T12:34:56.1234567Z (Graph API, 7 fractional digits)
    """
    if not isinstance(value, str) or not value:
        raise ValueError("RFC3339 value must be a non-empty string")

    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    # fromisoformat only takes up to 6 fractional digits before 3.11.
    if "." in s:
        head, _, rest = s.partition(".")
        digits = ""
        for ch in rest:
            if not ch.isdigit():
                break
            digits += ch
        s = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"

    dt = datetime.fromisoformat(s)  # raises ValueError if invalid
    dt = normalize_dt(dt)
    return dt.astimezone(timezone.utc)


def parse_optional_rfc3339(value: object) -> datetime | None:
    """Parse a provider timestamp field; None when absent or malformed."""
    if not isinstance(value, str):
        return None
    try:
        return parse_rfc3339(value)
    except ValueError:
        return None


def to_rfc3339(dt: datetime) -> str:
    """
    Convert tz-aware datetime to RFC3339 (UTC, with 'Z').

    Keeps microseconds if present.
    """
    dt = normalize_dt(dt).astimezone(timezone.utc)
    s = dt.isoformat(timespec="microseconds")
    return s.replace("+00:00", "Z")


def from_epoch_millis(value: str | int) -> datetime:
    """Convert a millisecond Unix timestamp (as sent by push channels) to UTC."""
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def to_epoch_millis(dt: datetime) -> int:
    return int(normalize_dt(dt).timestamp() * 1000)


def normalize_dt(dt: datetime) -> datetime:
    """Ensure datetime is tz-aware. Raises if naive."""
    if not isinstance(dt, datetime):
        raise TypeError("dt must be a datetime")
    if dt.tzinfo is None:
        raise ValueError("naive datetime is not allowed; timezone-aware required")
    return dt
