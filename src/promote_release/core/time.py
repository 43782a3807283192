import time
from datetime import datetime, timezone


def utc_today() -> str:
    """Release date stamp, e.g. `2024-05-02`."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def unix_timestamp() -> int:
    return int(time.time())


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def format_duration_ms(ms: int) -> str:
    """Return a short human-readable duration string."""
    if ms < 1000:
        return f"{ms} ms"
    return f"{ms / 1000:.2f} s"
