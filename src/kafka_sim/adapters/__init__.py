"""Adapters for the Kafka simulator."""
