"""Configuration for the Kafka simulator."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TopicSpec(BaseModel):
    """Topic created when the cluster boots."""

    name: str = Field(..., min_length=1)
    partitions: int = Field(default=1, ge=1)
    replication_factor: int = Field(default=1, ge=1)


class ClusterConfig(BaseModel):
    """Cluster topology configuration."""

    broker_count: int = Field(default=3, ge=0, le=64)
    base_port: int = Field(default=9092, ge=1, le=65535)
    log_retention: int = Field(default=200, ge=1, description="Messages kept per partition")
    initial_topics: list[TopicSpec] = Field(
        default_factory=lambda: [
            TopicSpec(name="orders", partitions=3, replication_factor=2),
            TopicSpec(name="payments", partitions=2, replication_factor=2),
        ]
    )


class ProducerConfig(BaseModel):
    """Default producer configuration."""

    acks: Literal[0, 1, "all"] = Field(default=1)
    retries: int = Field(default=3, ge=0)
    idempotent: bool = Field(default=False)
    batch_size: int = Field(default=16384, ge=0)
    linger_ms: int = Field(default=0, ge=0)
    compression_type: Literal["none", "gzip", "snappy", "lz4", "zstd"] = Field(default="none")
    event_log_size: int = Field(default=50, ge=1)

    @field_validator("acks", mode="before")
    @classmethod
    def parse_acks(cls, value: Any) -> Any:
        """Accept env strings "0", "1" and "-1" (an alias for "all")."""
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "-1":
                return "all"
            if value.isdigit():
                return int(value)
        if value == -1:
            return "all"
        return value


class ConsumerConfig(BaseModel):
    """Defaults for every consumer that joins a group."""

    auto_offset_reset: Literal["earliest", "latest", "none"] = Field(default="latest")
    max_poll_records: int = Field(default=500, ge=1)
    fetch_min_bytes: int = Field(default=1, ge=0)
    max_poll_interval_ms: int = Field(default=300_000, ge=1)
    enable_auto_commit: bool = Field(default=True)
    auto_commit_interval_ms: int = Field(default=5000, ge=0)
    delivery_semantics: Literal["at-most-once", "at-least-once", "exactly-once"] = Field(
        default="at-least-once"
    )
    event_log_size: int = Field(default=30, ge=1)


class GroupConfig(BaseModel):
    """Consumer group configuration."""

    default_group_id: str = Field(default="group-alpha", min_length=1)
    default_topics: list[str] = Field(default_factory=lambda: ["orders"])
    default_strategy: Literal["range", "round-robin", "sticky"] = Field(default="round-robin")
    default_consumer_count: int = Field(default=2, ge=0)
    rebalance_log_size: int = Field(default=20, ge=1)


class ReplicationConfig(BaseModel):
    """Replication configuration."""

    stall_backoff: int = Field(default=1, ge=0, description="HWM lag while an ISR member is down")
    event_log_size: int = Field(default=50, ge=1)


class SimulationConfig(BaseModel):
    """Scheduler and history configuration."""

    tick_interval_ms: int = Field(default=1000, ge=1)
    auto_produce_interval_ms: int = Field(default=500, ge=1)
    auto_produce_count: int = Field(default=5, ge=0)
    poll_interval_ms: int = Field(default=1000, ge=1)
    metrics_history_size: int = Field(default=60, ge=1)
    seed: Optional[int] = Field(default=None, description="Seed for latency jitter")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    otel_endpoint: Optional[str] = Field(default=None)
    trace_console: bool = Field(default=False)
    environment: str = Field(default="development")


class Config(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(env_prefix="KAFKA_SIM_", env_nested_delimiter="__")

    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    producer: ProducerConfig = Field(default_factory=ProducerConfig)
    consumer: ConsumerConfig = Field(default_factory=ConsumerConfig)
    group: GroupConfig = Field(default_factory=GroupConfig)
    replication: ReplicationConfig = Field(default_factory=ReplicationConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    return Config()
