"""Application layer: simulation session and virtual clock."""

from kafka_sim.application.scheduler import ScheduledJob, TickScheduler
from kafka_sim.application.simulation import Simulation

__all__ = ["ScheduledJob", "TickScheduler", "Simulation"]
