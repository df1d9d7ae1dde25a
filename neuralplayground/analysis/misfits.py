"""Misfit gallery: the labelled samples the network finds hardest."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ..core.losses import capped_losses
from ..core.network import NeuralNetwork
from ..core.types import OUTPUT_CLASSES, Array, as_input_matrix, as_label_vector, frozen_copy


@dataclass(frozen=True, eq=False)
class Misfit:
    input: Array
    true_label: int
    predicted_label: int
    probabilities: Array
    loss: float
    is_wrong: bool
    true_confidence: float
    confidence: float


@dataclass(frozen=True)
class MisfitSummary:
    total_samples: int
    total_wrong: int
    accuracy: float
    class_errors: Tuple[int, ...]
    most_confused_pair: Tuple[int, int] | None


def _evaluate(
    network: NeuralNetwork, inputs: Sequence[Sequence[float]] | Array, labels: Sequence[int] | Array
) -> Tuple[Array, Array, Array]:
    X = as_input_matrix(inputs, network.input_size)
    y = as_label_vector(labels, X.shape[0])
    return X, y, network.predict_proba(X)


def find_misfits(
    network: NeuralNetwork,
    inputs: Sequence[Sequence[float]] | Array,
    labels: Sequence[int] | Array,
    count: int = 24,
) -> List[Misfit]:
    """Return up to ``count`` samples ordered by descending cross-entropy.

    Ties keep the input order. Non-finite losses are replaced by
    ``DEGENERATE_LOSS`` so the ordering stays total; floored finite losses can
    exceed that cap and rank above them.
    """

    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if len(labels) == 0:
        return []
    X, y, probs = _evaluate(network, inputs, labels)
    losses = capped_losses(probs, y)
    predicted = probs.argmax(axis=1)
    order = np.argsort(-losses, kind="stable")[:count]

    misfits: List[Misfit] = []
    for idx in order:
        pred = int(predicted[idx])
        truth = int(y[idx])
        misfits.append(
            Misfit(
                input=frozen_copy(X[idx]),
                true_label=truth,
                predicted_label=pred,
                probabilities=frozen_copy(probs[idx]),
                loss=float(losses[idx]),
                is_wrong=pred != truth,
                true_confidence=float(probs[idx, truth]),
                confidence=float(probs[idx, pred]),
            )
        )
    return misfits


def compute_misfit_summary(
    network: NeuralNetwork,
    inputs: Sequence[Sequence[float]] | Array,
    labels: Sequence[int] | Array,
) -> MisfitSummary:
    """Count errors per true class and find the most frequent confusion."""

    if len(labels) == 0:
        return MisfitSummary(0, 0, 0.0, (0,) * OUTPUT_CLASSES, None)
    _, y, probs = _evaluate(network, inputs, labels)
    predicted = probs.argmax(axis=1)
    wrong = predicted != y
    class_errors = np.bincount(y[wrong], minlength=OUTPUT_CLASSES)
    pairs = Counter(zip(y[wrong].tolist(), predicted[wrong].tolist()))
    most_confused = None
    if pairs:
        # Counter.most_common keeps first-seen order among equal counts.
        (true_label, pred_label), _ = pairs.most_common(1)[0]
        most_confused = (int(true_label), int(pred_label))
    total = int(y.shape[0])
    total_wrong = int(wrong.sum())
    return MisfitSummary(
        total_samples=total,
        total_wrong=total_wrong,
        accuracy=1.0 - total_wrong / total,
        class_errors=tuple(int(c) for c in class_errors),
        most_confused_pair=most_confused,
    )


__all__ = ["Misfit", "MisfitSummary", "compute_misfit_summary", "find_misfits"]
