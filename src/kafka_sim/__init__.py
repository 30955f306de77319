"""
Kafka Simulator - educational model of Kafka's distributed runtime

A deterministic, in-memory simulation of brokers, topics, partitions,
replication/ISR, producers and consumer-group rebalancing.
"""

__version__ = "0.1.0"
