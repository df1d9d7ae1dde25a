"""Cross-entropy helpers shared by training and evaluation."""

from __future__ import annotations

import numpy as np

from .types import OUTPUT_CLASSES, Array

# Floor applied to p(true) before the log so a confident miss stays finite.
PROB_FLOOR = 1e-10
# Loss reported for samples whose log-probability is still not finite.
DEGENERATE_LOSS = 20.0


def one_hot(labels: Array, num_classes: int = OUTPUT_CLASSES) -> Array:
    out = np.zeros((labels.shape[0], num_classes), dtype=np.float64)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out


def sample_losses(probs: Array, labels: Array) -> Array:
    """Per-sample ``-log p[label]``.

    NaN probabilities propagate as NaN losses; callers decide whether to cap.
    """

    true_probs = probs[np.arange(labels.shape[0]), labels]
    with np.errstate(invalid="ignore"):
        return -np.log(np.maximum(true_probs, PROB_FLOOR))


def cross_entropy(probs: Array, labels: Array) -> tuple[float, Array]:
    """Return the mean cross-entropy and ``dL/dz`` for softmax outputs.

    ``probs`` are softmax probabilities of shape ``(N, C)``. The returned
    gradient is per sample (not divided by ``N``) so that callers can decide
    how to scale the accumulated update.
    """

    losses = sample_losses(probs, labels)
    delta = probs - one_hot(labels, probs.shape[1])
    return float(np.mean(losses)), delta


def capped_losses(probs: Array, labels: Array) -> Array:
    losses = sample_losses(probs, labels)
    return np.where(np.isfinite(losses), losses, DEGENERATE_LOSS)


__all__ = [
    "DEGENERATE_LOSS",
    "PROB_FLOOR",
    "capped_losses",
    "cross_entropy",
    "one_hot",
    "sample_losses",
]
