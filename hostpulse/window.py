from __future__ import annotations
from collections import deque
from typing import Deque, List, Optional


class RollingWindow:
    """
    Fixed-capacity FIFO of float samples, oldest first.
    Single writer (the sampling tick); no locking.
    """

    def __init__(self, capacity: int = 120):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._samples: Deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def push(self, value: float) -> None:
        self._samples.append(float(value))

    def snapshot(self) -> List[float]:
        return list(self._samples)

    def latest(self) -> Optional[float]:
        return self._samples[-1] if self._samples else None
