"""Offline forward passes over recorded parameters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np

from ..core.activations import get_activation, softmax
from ..core.types import Array, LayerParams, LayerState, frozen_copy
from .recorders import EpochSnapshot

ActivationSpec = Union[str, Sequence[str]]


@dataclass(frozen=True, eq=False)
class ReplayResult:
    probabilities: Array
    label: int


def _params(source: EpochSnapshot | Sequence[LayerParams]) -> Sequence[LayerParams]:
    return source.params if isinstance(source, EpochSnapshot) else source


def replay_forward(
    params: EpochSnapshot | Sequence[LayerParams],
    input: Sequence[float] | Array,
    activation: ActivationSpec = "relu",
) -> ReplayResult:
    """Classify ``input`` with historical parameters; no live network is touched.

    The last entry of ``params`` is treated as the softmax layer. ``activation``
    is either one name for every hidden layer or one name per hidden layer.
    Non-finite weighted sums are replaced by zero.
    """

    layers = _params(params)
    if not layers:
        raise ValueError("replay needs at least the output layer's parameters")
    n_hidden = len(layers) - 1
    names = [activation] * n_hidden if isinstance(activation, str) else list(activation)
    if len(names) != n_hidden:
        raise ValueError(f"expected {n_hidden} activation names, got {len(names)}")
    fns = [get_activation(name) for name in names]

    current = np.asarray(input, dtype=np.float64).reshape(-1)
    with np.errstate(over="ignore", invalid="ignore"):
        for idx, layer in enumerate(layers):
            W = np.asarray(layer.weights, dtype=np.float64)
            if W.shape[1] != current.shape[0]:
                raise ValueError(
                    f"layer {idx} expects {W.shape[1]} inputs, got {current.shape[0]}"
                )
            z = W @ current + np.asarray(layer.biases, dtype=np.float64)
            z = np.where(np.isfinite(z), z, 0.0)
            current = softmax(z) if idx == n_hidden else fns[idx](z)
    return ReplayResult(probabilities=frozen_copy(current), label=int(np.argmax(current)))


def params_to_layers(params: EpochSnapshot | Sequence[LayerParams]) -> List[LayerState]:
    """Rebuild :class:`LayerState` records with zeroed forward buffers."""

    out: List[LayerState] = []
    for layer in _params(params):
        zeros = np.zeros(np.shape(layer.biases)[0])
        out.append(LayerState.capture(layer.weights, layer.biases, zeros, zeros))
    return out


__all__ = ["ReplayResult", "params_to_layers", "replay_forward"]
