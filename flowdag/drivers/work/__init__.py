"""Work function drivers."""

from flowdag.drivers.work.simulated import SimulatedNodeFailure, SimulatedWork

__all__ = ["SimulatedNodeFailure", "SimulatedWork"]
