"""Bounded event logs surfaced to observers."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Generic, Iterator, Optional, TypeVar
import time

T = TypeVar("T")


@dataclass(frozen=True)
class SimulationEvent:
    """Single entry in a component's recent-event log.

    ``kind`` is a short tag such as ``sent``, ``poll``, ``commit``,
    ``error``, ``isr-shrink`` or ``broker-down``.
    """
    kind: str
    message: str = ""
    timestamp: float = field(default_factory=time.time)
    topic: Optional[str] = None
    partition_id: Optional[int] = None
    broker_id: Optional[int] = None


@dataclass(frozen=True)
class RebalanceEvent:
    """Summary of one completed rebalance."""
    consumer_count: int
    partition_count: int
    strategy: str
    reason: str
    generation: int
    timestamp: float = field(default_factory=time.time)


class EventLog(Generic[T]):
    """Ring buffer of recent events, newest first.

    Once ``capacity`` is reached the oldest entry is dropped on each
    append.
    """

    def __init__(self, capacity: int = 50):
        """Initialize event log.

        Args:
            capacity: Maximum number of retained events.
        """
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._events: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._events.maxlen or 0

    def record(self, event: T) -> T:
        """Record an event as the newest entry."""
        self._events.appendleft(event)
        return event

    def latest(self) -> Optional[T]:
        return self._events[0] if self._events else None

    def to_list(self, limit: Optional[int] = None) -> list[T]:
        """Return events newest first, optionally truncated to ``limit``."""
        events = list(self._events)
        return events if limit is None else events[:limit]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[T]:
        return iter(self._events)
