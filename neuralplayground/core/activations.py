"""Activation utilities for neuralplayground."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from .types import Array


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def relu_deriv(z: Array) -> Array:
    return (z > 0).astype(np.float64)


def sigmoid(x: Array) -> Array:
    """Logistic sigmoid with the input clipped to avoid ``exp`` overflow."""

    return 1.0 / (1.0 + np.exp(-np.clip(x, -500.0, 500.0)))


def sigmoid_deriv(z: Array) -> Array:
    s = sigmoid(z)
    return s * (1.0 - s)


def tanh(x: Array) -> Array:
    return np.tanh(x)


def tanh_deriv(z: Array) -> Array:
    return 1.0 - np.tanh(z) ** 2


@dataclass(frozen=True)
class Activation:
    """An elementwise nonlinearity paired with its derivative.

    The derivative is evaluated on the pre-activation ``z`` so that forward
    and backward passes share the same buffers.
    """

    name: str
    fn: Callable[[Array], Array]
    derivative: Callable[[Array], Array]

    def __call__(self, z: Array) -> Array:
        return self.fn(z)


ACTIVATIONS: Dict[str, Activation] = {
    "relu": Activation("relu", relu, relu_deriv),
    "sigmoid": Activation("sigmoid", sigmoid, sigmoid_deriv),
    "tanh": Activation("tanh", tanh, tanh_deriv),
}


def get_activation(name: str) -> Activation:
    try:
        return ACTIVATIONS[name]
    except KeyError as exc:
        available = ", ".join(sorted(ACTIVATIONS))
        raise KeyError(f"Unknown activation {name!r}. Available activations: {available}") from exc


def softmax(z: Array) -> Array:
    """Numerically stable softmax over the last axis.

    Non-finite logits produce NaN rows; there is no silent uniform fallback.
    """

    z = np.asarray(z, dtype=np.float64)
    shifted = z - z.max(axis=-1, keepdims=True)
    with np.errstate(invalid="ignore"):
        e = np.exp(shifted)
        return e / e.sum(axis=-1, keepdims=True)


def argmax(p: Array) -> int:
    return int(np.argmax(p))


def xavier_init(
    rng: np.random.Generator, fan_in: int, fan_out: int, size: tuple[int, ...] | None = None
) -> Array:
    """Glorot normal initialisation with ``std = sqrt(2 / (fan_in + fan_out))``."""

    std = np.sqrt(2.0 / (fan_in + fan_out))
    shape = size if size is not None else (fan_out, fan_in)
    return rng.standard_normal(shape) * std


__all__ = [
    "ACTIVATIONS",
    "Activation",
    "argmax",
    "get_activation",
    "relu",
    "relu_deriv",
    "sigmoid",
    "sigmoid_deriv",
    "softmax",
    "tanh",
    "tanh_deriv",
    "xavier_init",
]
