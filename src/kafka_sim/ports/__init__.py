"""Ports for the Kafka simulator."""
