"""Broker entity."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_BASE_PORT = 9092


@dataclass
class Broker:
    """A server node in the simulated cluster.

    Brokers are never removed, only marked dead, so their ids stay valid
    references in partition replica sets.
    """
    id: int
    host: str = ""
    port: int = field(default=-1)
    is_alive: bool = True
    load: float = 0.0  # simulated CPU/IO load 0-100
    disk_usage: float = 0.0  # simulated MB
    partition_count: int = 0  # partitions this broker leads

    def __post_init__(self) -> None:
        if not self.host:
            self.host = f"broker-{self.id}"
        if self.port < 0:
            self.port = DEFAULT_BASE_PORT + self.id

    def kill(self) -> None:
        """Simulate broker failure."""
        self.is_alive = False

    def restart(self) -> None:
        """Simulate broker recovery."""
        self.is_alive = True
        self.load = 0.0
