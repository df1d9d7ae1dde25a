"""Training history buffers and offline replay."""

from .recorders import (
    EpochRecorder,
    EpochSnapshot,
    GradientFlowHistory,
    WeightEvolutionRecorder,
    WeightFrame,
    compute_weight_delta,
)
from .replay import ReplayResult, params_to_layers, replay_forward

__all__ = [
    "EpochRecorder",
    "EpochSnapshot",
    "GradientFlowHistory",
    "ReplayResult",
    "WeightEvolutionRecorder",
    "WeightFrame",
    "compute_weight_delta",
    "params_to_layers",
    "replay_forward",
]
