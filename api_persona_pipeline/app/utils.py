"""
Small utilities: ids, timestamps and timing.
"""

import time
import uuid
from datetime import datetime, timezone


def new_analysis_id() -> str:
    """Time-based UUID; unique per call even for concurrent requests."""
    return str(uuid.uuid1())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat().replace("+00:00", "Z")


def elapsed_ms(start: float) -> int:
    """Milliseconds since `start`, a time.perf_counter() reading."""
    return int((time.perf_counter() - start) * 1000)
