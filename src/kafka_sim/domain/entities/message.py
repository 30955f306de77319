"""Message entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
import time

from kafka_sim.domain.value_objects.identifiers import create_message_id


@dataclass
class Message:
    """Single event flowing through the simulated cluster.

    ``offset`` and ``partition_id`` are assigned by the owning partition on
    append; after that the message is treated as immutable. A ``None`` or
    empty key makes the message eligible for round-robin routing.
    """
    value: Any
    key: Optional[str] = None
    id: str = field(default_factory=create_message_id)
    timestamp: float = field(default_factory=time.time)
    size: int = 1  # simulated size in KB
    offset: Optional[int] = None
    partition_id: Optional[int] = None
    # Set only when sent by an idempotent producer
    producer_epoch: Optional[int] = None
    sequence_number: Optional[int] = None

    @property
    def has_key(self) -> bool:
        return self.key is not None and self.key != ""

    @property
    def is_appended(self) -> bool:
        return self.offset is not None
