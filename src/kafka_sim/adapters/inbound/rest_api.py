"""FastAPI REST adapter for the Kafka simulator.

Provides HTTP endpoints for driving a simulation session.

Usage:
    from kafka_sim.adapters.inbound.rest_api import create_app

    app = create_app()
    # Run with: kafka-sim (uses server.host / server.port)
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional, Union

from fastapi import FastAPI, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from kafka_sim import __version__
from kafka_sim.application.simulation import Simulation
from kafka_sim.domain.services.producer import ProduceResult
from kafka_sim.domain.value_objects.simulation_types import CommandStatus
from kafka_sim.ports.inbound import CommandResult


# Pydantic models for request/response serialization


class CreateTopicRequest(BaseModel):
    """Request to create a topic."""

    name: str = Field(..., min_length=1, description="Topic name")
    partitions: int = Field(default=3, description="Number of partitions")
    replication_factor: int = Field(default=2, description="Replicas per partition")


class ProduceRequest(BaseModel):
    """Request to produce one message."""

    value: Any = Field(..., description="Message payload")
    key: Optional[str] = Field(default=None, description="Routing key; omit for round-robin")
    topic: Optional[str] = Field(default=None, description="Target topic (selected topic if omitted)")


class ProduceBatchRequest(BaseModel):
    """Request to produce several messages to the selected topic."""

    count: int = Field(default=5, ge=0, le=10_000)
    key: Optional[str] = None


class BurstRequest(BaseModel):
    """Request to produce a burst."""

    count: int = Field(default=10, ge=0, le=10_000)
    key_prefix: Optional[str] = None
    topic: Optional[str] = None


class ProducerConfigRequest(BaseModel):
    """Partial producer configuration update."""

    acks: Optional[Union[int, str]] = None
    idempotent: Optional[bool] = None
    retries: Optional[int] = Field(default=None, ge=0)
    batch_size: Optional[int] = Field(default=None, ge=0)
    linger_ms: Optional[int] = Field(default=None, ge=0)
    compression_type: Optional[str] = None
    topic_name: Optional[str] = None


class CreateGroupRequest(BaseModel):
    """Request to create a consumer group."""

    group_id: Optional[str] = Field(default=None, description="Group ID (random if omitted)")
    topics: list[str] = Field(default_factory=list, description="Subscribed topics")
    strategy: Optional[str] = Field(default=None, description="range, round-robin or sticky")


class StrategyRequest(BaseModel):
    """Request to change a group's assignor."""

    strategy: str = Field(..., description="range, round-robin or sticky")


class AdvanceRequest(BaseModel):
    """Request to advance the virtual clock."""

    elapsed_ms: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = __version__


class CommandResponse(BaseModel):
    """Generic command outcome."""

    status: str
    revision: int
    value: Any = None


_STATUS_CODES = {
    CommandStatus.TOPIC_EXISTS: status.HTTP_409_CONFLICT,
    CommandStatus.INVALID_ARGUMENT: 422,
}


def _raise_for_status(result: CommandResult) -> None:
    """Map a non-OK command status onto an HTTP error."""
    if result.ok:
        return
    if result.status.is_not_found:
        code = status.HTTP_404_NOT_FOUND
    else:
        code = _STATUS_CODES.get(result.status, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(
        status_code=code,
        detail={"status": result.status.value, "value": _jsonable(result.value)},
    )


def _produce_payload(result: ProduceResult) -> dict:
    message = result.message
    return {
        "success": result.success,
        "partition_id": result.partition_id,
        "offset": result.offset,
        "latency_ms": round(result.latency_ms, 3),
        "message_id": message.id if message else None,
        "key": message.key if message else None,
        "error": result.error.value if result.error else None,
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, ProduceResult):
        return _produce_payload(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if hasattr(value, "__dataclass_fields__"):
        return asdict(value)
    return value


def _respond(result: CommandResult) -> CommandResponse:
    _raise_for_status(result)
    return CommandResponse(
        status=result.status.value,
        revision=result.revision,
        value=_jsonable(result.value),
    )


def create_app(simulation: Optional[Simulation] = None) -> FastAPI:
    """Create FastAPI application with simulator endpoints.

    Args:
        simulation: Session to expose (the container's session if omitted).

    Returns:
        Configured FastAPI application.
    """
    if simulation is None:
        from kafka_sim.infrastructure.container import get_container

        simulation = get_container().simulation
    sim = simulation

    app = FastAPI(
        title="Kafka Simulator API",
        description="Deterministic in-memory simulation of a Kafka cluster",
        version=__version__,
    )

    # System endpoints
    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Check system health status."""
        return HealthResponse(status="healthy")

    @app.get("/revision", tags=["System"])
    async def get_revision():
        """Current state revision; re-read the snapshot when it moves."""
        return {"revision": sim.revision}

    @app.get("/metrics", tags=["System"])
    async def get_metrics():
        """Prometheus metrics."""
        return Response(
            content=generate_latest(sim.metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.get("/snapshot", tags=["System"])
    async def get_snapshot():
        """Full session snapshot."""
        return sim.to_dict()

    @app.get("/history", tags=["System"])
    async def get_history():
        """Per-tick metrics history."""
        return {"samples": [asdict(s) for s in sim.get_history()]}

    # Simulation clock endpoints
    @app.post("/tick", response_model=CommandResponse, tags=["Simulation"])
    async def tick():
        """Run one replication tick."""
        return _respond(sim.tick())

    @app.post("/simulation/toggle", tags=["Simulation"])
    async def toggle_simulation():
        """Start or stop the periodic jobs."""
        return {"running": sim.toggle_simulation(), "revision": sim.revision}

    @app.post("/simulation/advance", tags=["Simulation"])
    async def advance(request: AdvanceRequest):
        """Advance the virtual clock."""
        executed = sim.advance(request.elapsed_ms)
        return {
            "executed": executed,
            "now_ms": sim.scheduler.now_ms,
            "revision": sim.revision,
        }

    # Topic endpoints
    @app.post(
        "/topics",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Topics"],
    )
    async def create_topic(request: CreateTopicRequest):
        """Create a topic."""
        return _respond(
            sim.create_topic(request.name, request.partitions, request.replication_factor)
        )

    @app.get("/topics", tags=["Topics"])
    async def list_topics():
        """List all topics."""
        topics = [asdict(t) for t in sim.snapshot().topics]
        return {"topics": topics, "count": len(topics)}

    @app.post("/topics/{name}/select", response_model=CommandResponse, tags=["Topics"])
    async def select_topic(name: str):
        """Make a topic the default produce target."""
        return _respond(sim.select_topic(name))

    # Broker endpoints
    @app.get("/brokers", tags=["Brokers"])
    async def list_brokers():
        """List all brokers."""
        brokers = [asdict(b) for b in sim.snapshot().brokers]
        return {"brokers": brokers, "count": len(brokers)}

    @app.post(
        "/brokers",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Brokers"],
    )
    async def add_broker():
        """Add a broker."""
        return _respond(sim.add_broker())

    @app.post("/brokers/{broker_id}/kill", response_model=CommandResponse, tags=["Brokers"])
    async def kill_broker(broker_id: int):
        """Kill a broker."""
        return _respond(sim.kill_broker(broker_id))

    @app.post("/brokers/{broker_id}/restart", response_model=CommandResponse, tags=["Brokers"])
    async def restart_broker(broker_id: int):
        """Restart a broker."""
        return _respond(sim.restart_broker(broker_id))

    # Producer endpoints
    @app.post(
        "/produce",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Producer"],
    )
    async def produce(request: ProduceRequest):
        """Produce one message."""
        return _respond(sim.produce(request.value, key=request.key, topic=request.topic))

    @app.post(
        "/produce/batch",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Producer"],
    )
    async def produce_batch(request: ProduceBatchRequest):
        """Produce several messages to the selected topic."""
        return _respond(sim.produce_messages(request.count, key=request.key))

    @app.post(
        "/produce/burst",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Producer"],
    )
    async def burst(request: BurstRequest):
        """Produce a burst of messages."""
        return _respond(
            sim.burst(request.count, key_prefix=request.key_prefix, topic=request.topic)
        )

    @app.get("/producer", tags=["Producer"])
    async def get_producer():
        """Default producer configuration and counters."""
        return asdict(sim.snapshot().producers[0])

    @app.patch("/producer", response_model=CommandResponse, tags=["Producer"])
    async def update_producer(request: ProducerConfigRequest):
        """Update the default producer's settings."""
        return _respond(sim.set_producer_config(**request.model_dump(exclude_none=True)))

    # Consumer group endpoints
    @app.get("/groups", tags=["Consumer Groups"])
    async def list_groups():
        """List all consumer groups."""
        groups = [asdict(g) for g in sim.snapshot().groups]
        return {"groups": groups, "count": len(groups)}

    @app.post(
        "/groups",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Consumer Groups"],
    )
    async def create_group(request: CreateGroupRequest):
        """Create a consumer group with one consumer."""
        return _respond(
            sim.create_group(request.group_id, request.topics or None, request.strategy)
        )

    @app.get("/groups/{group_id}", tags=["Consumer Groups"])
    async def get_group(group_id: str):
        """Get consumer group details."""
        for group in sim.snapshot().groups:
            if group.group_id == group_id:
                return asdict(group)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Group {group_id} not found",
        )

    @app.delete("/groups/{group_id}", response_model=CommandResponse, tags=["Consumer Groups"])
    async def remove_group(group_id: str):
        """Remove a consumer group."""
        return _respond(sim.remove_group(group_id))

    @app.post(
        "/groups/{group_id}/consumers",
        response_model=CommandResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Consumer Groups"],
    )
    async def add_consumer(group_id: str):
        """Join a new consumer to a group."""
        return _respond(sim.add_consumer(group_id))

    @app.delete(
        "/groups/{group_id}/consumers/{consumer_id}",
        response_model=CommandResponse,
        tags=["Consumer Groups"],
    )
    async def remove_consumer(group_id: str, consumer_id: str):
        """Remove a consumer from a group."""
        return _respond(sim.remove_consumer(group_id, consumer_id))

    @app.post(
        "/groups/{group_id}/consumers/{consumer_id}/crash",
        response_model=CommandResponse,
        tags=["Consumer Groups"],
    )
    async def crash_consumer(group_id: str, consumer_id: str):
        """Crash a consumer."""
        return _respond(sim.crash_consumer(group_id, consumer_id))

    @app.put("/groups/{group_id}/strategy", response_model=CommandResponse, tags=["Consumer Groups"])
    async def set_strategy(group_id: str, request: StrategyRequest):
        """Change a group's assignor strategy."""
        return _respond(sim.set_assignor_strategy(group_id, request.strategy))

    @app.post("/groups/{group_id}/poll", tags=["Consumer Groups"])
    async def poll_group(group_id: str):
        """Poll every alive consumer in a group."""
        result = sim.poll_group(group_id)
        _raise_for_status(result)
        batches = {
            consumer_id: [
                {
                    "topic": batch.topic,
                    "partition_id": batch.partition_id,
                    "offsets": [m.offset for m in batch.messages],
                    "values": [m.value for m in batch.messages],
                }
                for batch in per_consumer
            ]
            for consumer_id, per_consumer in result.value.items()
        }
        return {"status": result.status.value, "revision": result.revision, "batches": batches}

    @app.post("/groups/{group_id}/commit", response_model=CommandResponse, tags=["Consumer Groups"])
    async def commit_group(group_id: str):
        """Commit offsets for every alive consumer in a group."""
        return _respond(sim.commit_group(group_id))

    @app.get("/groups/{group_id}/ownership", tags=["Consumer Groups"])
    async def get_ownership(group_id: str):
        """Partition -> owning consumer."""
        ownership = sim.ownership_map(group_id)
        if ownership is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Group {group_id} not found",
            )
        return {"group_id": group_id, "ownership": ownership}

    @app.get("/groups/{group_id}/lag", tags=["Consumer Groups"])
    async def get_lag(group_id: str):
        """Per-consumer lag report."""
        report = sim.lag_report(group_id)
        if report is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Group {group_id} not found",
            )
        return {
            "group_id": group_id,
            "lag": [asdict(entry) for entry in report],
            "total_lag": sum(entry.total_lag for entry in report),
        }

    return app


def main() -> None:
    """Serve the container's session on ``server.host``/``server.port``."""
    try:
        import uvicorn
    except ImportError as exc:
        raise ImportError(
            "uvicorn not installed. Install with: pip install 'kafka-sim[server]'"
        ) from exc
    from kafka_sim.infrastructure.container import get_container

    container = get_container()
    server = container.config.server
    container.logger.info("api_starting", host=server.host, port=server.port)
    uvicorn.run(
        create_app(container.simulation),
        host=server.host,
        port=server.port,
        log_config=None,
    )
