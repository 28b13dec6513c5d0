"""
Request Counter

Thread-safe in-memory usage counts per network and image class.
Increments run as background tasks and never gate a response.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Tuple


@dataclass
class CounterSnapshot:
    """Point-in-time view of the counter"""
    total: int
    by_key: Dict[str, int]
    started_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "by_key": self.by_key,
            "started_at": datetime.fromtimestamp(self.started_at).isoformat(),
        }


class RequestCounter:
    """
    Counts image requests that passed validation.

    Keys are "{network}/{image_class}".
    """

    def __init__(self):
        self._counts: Dict[Tuple[str, str], int] = {}
        self._total = 0
        self._lock = Lock()
        self._started_at = time.time()

    def increment(self, network: str, image_class: str) -> int:
        """
        Count one request.

        Returns:
            The new total
        """
        with self._lock:
            key = (network, image_class)
            self._counts[key] = self._counts.get(key, 0) + 1
            self._total += 1
            return self._total

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                total=self._total,
                by_key={f"{n}/{c}": count for (n, c), count in sorted(self._counts.items())},
                started_at=self._started_at,
            )
