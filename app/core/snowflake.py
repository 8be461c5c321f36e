"""
Snowflake id generator

64-bit ids that are unique across processes and sort by creation time:
- 41 bits: milliseconds since _EPOCH_MS
- 10 bits: node id (SNOWFLAKE_NODE_ID, 0-1023, distinct per instance)
- 12 bits: sequence within the millisecond (0-4095)

Time ordering is relied on by chat history pagination, which uses the
message id as its cursor.
"""
from __future__ import annotations

import threading
import time

from app.core.config import settings

# 2024-01-01T00:00:00Z
_EPOCH_MS = 1704067200000


class Snowflake:
    def __init__(self, *, node_id: int) -> None:
        """
        Args:
            node_id: 0-1023, unique per running instance

        Raises:
            ValueError: node id out of range
        """
        if not (0 <= node_id <= 1023):
            raise ValueError("SNOWFLAKE_NODE_ID must be in [0, 1023]")
        self._node_id = node_id
        self._lock = threading.Lock()
        self._last_ts = -1
        self._seq = 0

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    def next_id(self) -> int:
        """
        Next id, thread safe

        Small clock drifts backwards (up to 5s) are waited out; larger ones
        raise instead of risking duplicates.

        Raises:
            RuntimeError: clock moved back by more than 5 seconds
        """
        with self._lock:
            ts = self._now_ms()
            if ts < self._last_ts:
                diff = self._last_ts - ts
                if diff > 5000:
                    raise RuntimeError(
                        f"Clock moved backwards by {diff}ms. "
                        "Refusing to generate IDs to prevent duplicates."
                    )
                ts = self._wait_until(self._last_ts)

            if ts == self._last_ts:
                self._seq = (self._seq + 1) & 0xFFF
                if self._seq == 0:
                    # sequence exhausted for this millisecond
                    ts = self._wait_until(self._last_ts + 1)
            else:
                self._seq = 0

            self._last_ts = ts
            return ((ts - _EPOCH_MS) << 22) | (self._node_id << 12) | self._seq

    @classmethod
    def _wait_until(cls, target_ms: int) -> int:
        ts = cls._now_ms()
        while ts < target_ms:
            time.sleep(0.001)
            ts = cls._now_ms()
        return ts


_GENERATOR: Snowflake | None = None


def _get_generator() -> Snowflake:
    global _GENERATOR
    if _GENERATOR is None:
        _GENERATOR = Snowflake(node_id=settings.SNOWFLAKE_NODE_ID)
    return _GENERATOR


def generate_id() -> int:
    """
    New unique id from the process-wide generator

    Example:
        >>> generate_id()
        48721093459623936
    """
    return _get_generator().next_id()
