"""Per-target memory of the last raw readings."""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Union


@dataclass(frozen=True)
class CounterPair:
    """Cumulative collection count and collection time of one collector."""

    count: int
    time_ms: int


@dataclass(frozen=True)
class UptimeSample:
    """A single cumulative value and the process uptime it was read at."""

    uptime_ms: int
    value: int


Reading = Union[CounterPair, UptimeSample]


class RateState:
    """
    Last raw observation per metric key for one target.

    Owned by the scheduler, one instance per target, and only touched while
    that target is being sampled. Cleared when a pass for the target fails so
    the next successful pass starts from bootstrap estimates.
    """

    def __init__(self) -> None:
        self._readings: Dict[str, Reading] = {}

    def get(self, key: str) -> Optional[Reading]:
        """Return the stored reading for a metric key, or None if unseen."""
        return self._readings.get(key)

    def put(self, key: str, reading: Reading) -> None:
        self._readings[key] = reading

    def swap(self, key: str, reading: Reading) -> Optional[Reading]:
        """Store a new reading and return the one it replaces."""
        previous = self._readings.get(key)
        self._readings[key] = reading
        return previous

    def clear(self) -> None:
        self._readings.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._readings))

    def __contains__(self, key: object) -> bool:
        return key in self._readings

    def __len__(self) -> int:
        return len(self._readings)
