"""Core numerical primitives for neuralplayground."""

from . import activations, errors, losses, network, types
from .errors import ConfigurationError, DivergenceError, DivergenceWarning
from .network import NeuralNetwork, init_network
from .types import LayerConfig, NeuronStatus, TrainingConfig

__all__ = [
    "ConfigurationError",
    "DivergenceError",
    "DivergenceWarning",
    "LayerConfig",
    "NeuralNetwork",
    "NeuronStatus",
    "TrainingConfig",
    "activations",
    "errors",
    "init_network",
    "losses",
    "network",
    "types",
]
