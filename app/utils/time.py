import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(ms: int) -> str:
    """Epoch milliseconds -> ISO-8601 UTC string (with trailing 'Z')."""
    dt = datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc)
    return dt.isoformat(timespec="seconds").replace("+00:00", "Z")


def fixed_clock(ms: int) -> Clock:
    """Clock that always returns the same instant; handy for deterministic expiry checks."""
    return lambda: int(ms)
