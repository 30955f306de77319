"""Pytest configuration and shared fixtures for Kafka simulator tests."""

import random
from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from kafka_sim.application.simulation import Simulation
from kafka_sim.infrastructure.config import Config, SimulationConfig
from kafka_sim.infrastructure.container import Container
from kafka_sim.infrastructure.metrics import SimulationMetrics


@pytest.fixture(autouse=True)
def reset_container():
    """Reset the DI container before each test."""
    Container.reset()
    yield
    Container.reset()


@pytest.fixture
def test_config() -> Config:
    """Provide a test configuration with a fixed seed."""
    return Config(simulation=SimulationConfig(seed=42))


@pytest.fixture
def registry() -> CollectorRegistry:
    """Provide an isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> SimulationMetrics:
    """Provide metrics bound to the isolated registry."""
    return SimulationMetrics(registry)


@pytest.fixture
def simulation(test_config: Config, metrics: SimulationMetrics) -> Simulation:
    """Provide a freshly booted, seeded simulation session."""
    return Simulation(config=test_config, metrics=metrics, rng=random.Random(42))


@pytest.fixture
def container(test_config: Config) -> Container:
    """Provide a configured container for testing."""
    with patch("kafka_sim.infrastructure.container.get_config", return_value=test_config):
        return Container.create()


# Pytest markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
