"""neuralplayground public API."""

from .analysis import (
    compute_confusion_matrix,
    compute_decision_boundary,
    compute_misfit_summary,
    find_misfits,
    measure_gradient_flow,
    run_ablation_study,
)
from .core import activations, types  # noqa: F401
from .core.errors import ConfigurationError, DivergenceError, DivergenceWarning
from .core.network import NeuralNetwork, init_network
from .core.types import LayerConfig, NeuronStatus, TrainingConfig
from .data import generate_training_data
from .history import EpochRecorder, GradientFlowHistory, WeightEvolutionRecorder, replay_forward
from .introspection import dream, dream_chimera, project_activations, project_to_2d, saliency
from .training import TrainingSession, load_preset, presets, run_pipeline

__all__ = [
    "ConfigurationError",
    "DivergenceError",
    "DivergenceWarning",
    "EpochRecorder",
    "GradientFlowHistory",
    "LayerConfig",
    "NeuralNetwork",
    "NeuronStatus",
    "TrainingConfig",
    "TrainingSession",
    "WeightEvolutionRecorder",
    "activations",
    "compute_confusion_matrix",
    "compute_decision_boundary",
    "compute_misfit_summary",
    "dream",
    "dream_chimera",
    "find_misfits",
    "generate_training_data",
    "init_network",
    "load_preset",
    "measure_gradient_flow",
    "presets",
    "project_activations",
    "project_to_2d",
    "replay_forward",
    "run_ablation_study",
    "run_pipeline",
    "saliency",
    "types",
]
