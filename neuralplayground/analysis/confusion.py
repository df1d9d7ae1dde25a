"""Confusion-matrix evaluation over a labelled sample set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import OUTPUT_CLASSES, Array, as_input_matrix, as_label_vector, frozen_copy


@dataclass(frozen=True, eq=False)
class ConfusionData:
    """``matrix[actual][predicted]`` counts and the per-class metrics derived from it."""

    matrix: Array
    class_counts: Array
    precision: Array
    recall: Array
    f1: Array
    accuracy: float
    total: int


def _safe_ratio(num: Array, den: Array) -> Array:
    out = np.zeros(num.shape, dtype=np.float64)
    np.divide(num, den, out=out, where=den > 0)
    return out


def confusion_from_predictions(
    labels: Sequence[int] | Array, predicted: Sequence[int] | Array
) -> ConfusionData:
    """Build :class:`ConfusionData` from parallel label/prediction vectors.

    Classes that never occur get zero precision, recall and F1 instead of NaN.
    """

    y = as_label_vector(labels, len(labels))
    p = as_label_vector(predicted, y.shape[0])
    matrix = np.zeros((OUTPUT_CLASSES, OUTPUT_CLASSES), dtype=np.int64)
    np.add.at(matrix, (y, p), 1)

    diag = np.diag(matrix).astype(np.float64)
    row_sums = matrix.sum(axis=1)
    col_sums = matrix.sum(axis=0)
    precision = _safe_ratio(diag, col_sums)
    recall = _safe_ratio(diag, row_sums)
    f1 = _safe_ratio(2 * precision * recall, precision + recall)
    total = int(matrix.sum())
    accuracy = float(diag.sum() / total) if total else 0.0
    return ConfusionData(
        matrix=frozen_copy(matrix, dtype=np.int64),
        class_counts=frozen_copy(row_sums, dtype=np.int64),
        precision=frozen_copy(precision),
        recall=frozen_copy(recall),
        f1=frozen_copy(f1),
        accuracy=accuracy,
        total=total,
    )


def compute_confusion_matrix(
    network: NeuralNetwork,
    inputs: Sequence[Sequence[float]] | Array,
    labels: Sequence[int] | Array,
) -> ConfusionData:
    """Classify every sample and tabulate actual vs. predicted classes."""

    if len(labels) == 0:
        return confusion_from_predictions([], [])
    X = as_input_matrix(inputs, network.input_size)
    probs = network.predict_proba(X)
    return confusion_from_predictions(labels, probs.argmax(axis=1))


__all__ = ["ConfusionData", "compute_confusion_matrix", "confusion_from_predictions"]
