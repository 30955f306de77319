"""Inbound adapters for the Kafka simulator.

Provides the REST API adapter over a simulation session.
"""

from kafka_sim.adapters.inbound.rest_api import create_app

__all__ = ["create_app"]
