"""Fixed-capacity sample store for response-time history."""
import math
import threading
from collections import deque

from models.sla import Sample, DEFAULT_SAMPLE_CAPACITY


class SampleStore:
    """Thread-safe ring buffer of time-stamped samples.

    Appending beyond capacity silently evicts the oldest sample. Nothing is
    persisted; the store only ever holds recent history.
    """

    def __init__(self, capacity=DEFAULT_SAMPLE_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._samples = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._samples)

    def append(self, sample: Sample):
        """Add a sample, evicting the oldest once full."""
        with self._lock:
            self._samples.append(sample)

    def read_all(self):
        """All retained samples, oldest first."""
        with self._lock:
            return list(self._samples)

    def values(self):
        with self._lock:
            return [s.value for s in self._samples]

    def average(self):
        """Mean value, or None when empty."""
        values = self.values()
        if not values:
            return None
        return sum(values) / len(values)

    def percentile(self, p):
        """Nearest-rank percentile over retained values.

        Returns the value at index ceil(p/100 * n) - 1 of the sorted values,
        clamped to the valid range. None when the store is empty.
        """
        if not 0 < p <= 100:
            raise ValueError(f"percentile must be in (0, 100], got {p}")
        ordered = sorted(self.values())
        if not ordered:
            return None
        idx = math.ceil(p / 100 * len(ordered)) - 1
        return ordered[max(0, min(idx, len(ordered) - 1))]

    def clear(self):
        with self._lock:
            self._samples.clear()
