"""Time source used for session and verification expiry checks."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Current time as epoch seconds."""
        ...


class SystemClock:
    """Wall-clock time from ``time.time()``."""

    def now(self) -> float:
        return time.time()
