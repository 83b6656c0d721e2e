"""Epoch-millisecond clock shared by token expiry checks."""

from __future__ import annotations

from datetime import datetime, timezone


def now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)
