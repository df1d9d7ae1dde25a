"""Per-layer gradient magnitudes and a coarse vanishing/exploding verdict."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from ..core.network import GradientTrace, NeuralNetwork
from ..core.types import Array

DEAD_EPSILON = 1e-6
EXPLODING_THRESHOLD = 10.0
VANISHING_MEAN = 1e-6
VANISHING_RATIO = 1e-3
VANISHING_DEAD_FRACTION = 0.8

HEALTHY, VANISHING, EXPLODING = "healthy", "vanishing", "exploding"


@dataclass(frozen=True)
class LayerGradientStats:
    layer_idx: int
    mean_abs_grad: float
    max_abs_grad: float
    dead_fraction: float
    count: int


@dataclass(frozen=True)
class GradientFlowSnapshot:
    """One gradient-flow measurement; ``layers[0]`` is the first hidden layer."""

    layers: Tuple[LayerGradientStats, ...]
    health: str
    epoch: int


def _layer_stats(trace: GradientTrace, relu: bool) -> LayerGradientStats:
    unmasked = trace.status == 0
    grads = np.abs(trace.weight_grad[unmasked])
    grads = grads[np.isfinite(grads)]
    n_neurons = int(unmasked.sum())
    if n_neurons == 0:
        return LayerGradientStats(trace.layer_idx, 0.0, 0.0, 1.0, 0)

    dead = np.abs(trace.delta[unmasked]) < DEAD_EPSILON
    if relu:
        dead |= trace.activations[unmasked] == 0.0
    return LayerGradientStats(
        layer_idx=trace.layer_idx,
        mean_abs_grad=float(grads.mean()) if grads.size else 0.0,
        max_abs_grad=float(grads.max()) if grads.size else 0.0,
        dead_fraction=float(dead.mean()),
        count=int(grads.size),
    )


def classify_health(layers: Sequence[LayerGradientStats]) -> str:
    """Map per-layer stats to ``healthy``, ``vanishing`` or ``exploding``."""

    if not layers:
        return HEALTHY
    if any(s.max_abs_grad > EXPLODING_THRESHOLD for s in layers):
        return EXPLODING
    means = [s.mean_abs_grad for s in layers]
    smallest, largest = min(means), max(means)
    avg_dead = sum(s.dead_fraction for s in layers) / len(layers)
    if smallest < VANISHING_MEAN:
        return VANISHING
    if largest > 0 and smallest / largest < VANISHING_RATIO:
        return VANISHING
    if avg_dead > VANISHING_DEAD_FRACTION:
        return VANISHING
    return HEALTHY


def measure_gradient_flow(
    network: NeuralNetwork, input: Sequence[float] | Array, label: int
) -> GradientFlowSnapshot:
    """Backpropagate one sample's cross-entropy and summarise every layer.

    Parameters are not stepped. Frozen and killed neurons are skipped; the
    softmax layer is reported last.
    """

    traces = network.trace_gradients(input, label)
    names = network.activation_names
    stats = tuple(
        _layer_stats(trace, relu=idx < len(names) and names[idx] == "relu")
        for idx, trace in enumerate(traces)
    )
    return GradientFlowSnapshot(layers=stats, health=classify_health(stats), epoch=network.epoch)


__all__ = [
    "EXPLODING",
    "GradientFlowSnapshot",
    "HEALTHY",
    "LayerGradientStats",
    "VANISHING",
    "classify_health",
    "measure_gradient_flow",
]
