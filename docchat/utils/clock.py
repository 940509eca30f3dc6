"""
Sortable timestamps for records keyed by creation time.
"""
import threading
from datetime import datetime, timedelta, timezone

_lock = threading.Lock()
_last: datetime = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """
    Return an ISO-8601 UTC timestamp with microsecond precision.

    Values are strictly increasing within the process, so two messages written
    in the same microsecond still get distinct, correctly ordered keys.
    """
    global _last
    with _lock:
        now = utc_now()
        if now <= _last:
            now = _last + timedelta(microseconds=1)
        _last = now
    return now.isoformat(timespec="microseconds")


def compact_timestamp() -> str:
    """Timestamp used inside storage keys (``20250101120000123456``)."""
    return utc_now().strftime("%Y%m%d%H%M%S%f")
