# Domain Stats Package
from .models import (
    ComputeRetentionProgress,
    ParameterBundle,
    ReviewEvent,
    ReviewKind,
    SimulationRequest,
    SimulatorConfig,
)
from .ports import ReviewLogRepository, SimulationEngine

__all__ = [
    "ReviewKind",
    "ReviewEvent",
    "ParameterBundle",
    "SimulationRequest",
    "SimulatorConfig",
    "ComputeRetentionProgress",
    "ReviewLogRepository",
    "SimulationEngine",
]
