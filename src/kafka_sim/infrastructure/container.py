"""Dependency injection container for the Kafka simulator."""

from dataclasses import dataclass
from typing import ClassVar

import structlog
from opentelemetry import trace

from kafka_sim.application.simulation import Simulation
from kafka_sim.infrastructure.config import Config, get_config
from kafka_sim.infrastructure.logging import setup_logging
from kafka_sim.infrastructure.metrics import SimulationMetrics, get_metrics
from kafka_sim.infrastructure.tracing import setup_tracing


@dataclass
class Container:
    """Dependency injection container for simulator components."""

    config: Config
    logger: structlog.stdlib.BoundLogger
    tracer: trace.Tracer
    metrics: SimulationMetrics
    simulation: Simulation

    _instance: ClassVar["Container | None"] = None

    @classmethod
    def create(cls) -> "Container":
        """Create and initialize the container with all dependencies."""
        if cls._instance is not None:
            return cls._instance

        config = get_config()
        logger = setup_logging(
            level=config.observability.log_level,
            log_format=config.observability.log_format,
        )
        tracer = setup_tracing(config)
        metrics = get_metrics()
        simulation = Simulation(config=config, metrics=metrics, tracer=tracer)

        cls._instance = cls(
            config=config,
            logger=logger,
            tracer=tracer,
            metrics=metrics,
            simulation=simulation,
        )

        logger.info(
            "kafka_sim_container_initialized",
            environment=config.observability.environment,
            brokers=config.cluster.broker_count,
        )

        return cls._instance

    @classmethod
    def get(cls) -> "Container":
        """Get the singleton container instance."""
        if cls._instance is None:
            return cls.create()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the container (useful for testing)."""
        cls._instance = None


def get_container() -> Container:
    """Get the dependency injection container."""
    return Container.get()
