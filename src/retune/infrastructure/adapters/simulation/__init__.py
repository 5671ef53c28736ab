# Infrastructure Simulation Adapters Package
from .fsrs_simulator import FsrsSimulationEngine

__all__ = ["FsrsSimulationEngine"]
