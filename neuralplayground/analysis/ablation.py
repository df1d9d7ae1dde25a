"""Knock out hidden neurons one at a time and measure the accuracy cost."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import Array, NeuronStatus, as_input_matrix, as_label_vector


@dataclass
class AblationResult:
    layer_idx: int
    neuron_idx: int
    accuracy_without: float
    accuracy_drop: float
    importance: float = 0.0


@dataclass(frozen=True)
class AblationStudy:
    baseline_accuracy: float
    layers: Tuple[Tuple[AblationResult, ...], ...]
    total_neurons: int
    most_critical: AblationResult | None
    most_redundant: AblationResult | None


def _accuracy(network: NeuralNetwork, X: Array, y: Array) -> float:
    return float(np.mean(network.predict_proba(X).argmax(axis=1) == y))


def run_ablation_study(
    network: NeuralNetwork,
    inputs: Sequence[Sequence[float]] | Array,
    labels: Sequence[int] | Array,
) -> AblationStudy:
    """Kill each hidden neuron in turn against an all-active baseline.

    Importance is the accuracy drop normalised by the largest drop (negative
    drops count as zero). The caller's masks are restored before returning,
    even if evaluation fails.
    """

    X = as_input_matrix(inputs, network.input_size)
    if X.shape[0] == 0:
        raise ValueError("ablation needs at least one sample")
    y = as_label_vector(labels, X.shape[0])

    saved = network.get_neuron_statuses()
    network.clear_all_masks()
    try:
        baseline = _accuracy(network, X, y)
        per_layer: List[List[AblationResult]] = []
        for layer_idx, layer in enumerate(network.config.layers):
            results: List[AblationResult] = []
            for neuron_idx in range(layer.neurons):
                network.set_neuron_status(layer_idx, neuron_idx, NeuronStatus.KILLED)
                without = _accuracy(network, X, y)
                network.set_neuron_status(layer_idx, neuron_idx, NeuronStatus.ACTIVE)
                results.append(AblationResult(layer_idx, neuron_idx, without, baseline - without))
            per_layer.append(results)
    finally:
        network.clear_all_masks()
        for (layer_idx, neuron_idx), status in saved.items():
            network.set_neuron_status(layer_idx, neuron_idx, status)

    flat = [r for layer in per_layer for r in layer]
    max_drop = max((r.accuracy_drop for r in flat), default=0.0)
    if max_drop > 0:
        for r in flat:
            r.importance = max(0.0, r.accuracy_drop / max_drop)

    # First occurrence wins ties in both directions.
    most_critical = max(flat, key=lambda r: r.accuracy_drop, default=None)
    most_redundant = min(flat, key=lambda r: r.accuracy_drop, default=None)
    return AblationStudy(
        baseline_accuracy=baseline,
        layers=tuple(tuple(layer) for layer in per_layer),
        total_neurons=len(flat),
        most_critical=most_critical,
        most_redundant=most_redundant,
    )


__all__ = ["AblationResult", "AblationStudy", "run_ablation_study"]
