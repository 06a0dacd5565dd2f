from __future__ import annotations
import threading
from typing import Iterable, List

from .models import ProcessSpike


class SpikeRegistry:
    """
    Currently published spike set, shared between the detection worker
    (sole writer) and any number of readers on other threads.

    The set is always replaced wholesale, so one lock around the swap and the
    copy-out is enough: a reader sees either the whole old list or the whole
    new one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._spikes: List[ProcessSpike] = []

    def publish(self, spikes: Iterable[ProcessSpike]) -> None:
        fresh = list(spikes)   # built outside the lock
        with self._lock:
            self._spikes = fresh

    def snapshot(self) -> List[ProcessSpike]:
        with self._lock:
            return list(self._spikes)
