"""
Record id generation and UTC timestamp utilities (stdlib-only).

Adapters stamp ``createdAt`` / ``updatedAt`` with :func:`stamp`, which never
returns the same instant twice within a process, so an update issued right
after a create always carries a strictly later ``updatedAt`` even on clocks
with coarse resolution.

Features:
    - **utc_now():** Timezone-aware UTC datetime
    - **stamp():** Strictly increasing UTC datetime (microsecond steps)
    - **generate_id():** Time-sortable 26-char ULID-style identifier
    - **ensure_utc():** Attach UTC to naive datetimes read back from SQL
"""

import random
import threading
import time
from datetime import UTC, datetime, timedelta

_STAMP_LOCK = threading.Lock()
_last_stamp: datetime | None = None


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def stamp() -> datetime:
    """Current UTC datetime, strictly later than any previous stamp."""
    global _last_stamp
    with _STAMP_LOCK:
        now = utc_now()
        if _last_stamp is not None and now <= _last_stamp:
            now = _last_stamp + timedelta(microseconds=1)
        _last_stamp = now
        return now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def generate_id() -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, Crockford base32, time-sortable.
    """
    # Time component: milliseconds since epoch (48 bits -> 10 chars)
    timestamp_ms = int(time.time() * 1000)
    timestamp_chars = _encode_base32(timestamp_ms, 10)

    # Random component (80 bits -> 16 chars)
    random_part = "".join(random.choices(_ENCODING, k=16))

    return timestamp_chars + random_part


# ULID base32 alphabet (Crockford's)
_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENCODING_LEN = len(_ENCODING)


def _encode_base32(value: int, length: int) -> str:
    """Encode integer to base32 string of fixed length."""
    result = []
    for _ in range(length):
        result.append(_ENCODING[value % _ENCODING_LEN])
        value //= _ENCODING_LEN
    return "".join(reversed(result))
