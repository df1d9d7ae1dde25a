"""Two-component PCA for the activation-space view."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import Array, ProjectionData, as_label_vector, frozen_copy

POWER_ITERATIONS = 100
# Relative to the total variance (trace of the covariance).
_REL_TOL = 1e-12


@dataclass(frozen=True, eq=False)
class PCAProjection:
    """2-D coordinates per input row plus the variance along each axis."""

    points: Array
    variance: Tuple[float, float]
    components: Array


def _seed_vector(dim: int) -> Array:
    # Fixed start direction keeps the projection deterministic for a given input.
    v = np.sin(np.arange(dim) * 1.618 + 0.5)
    norm = np.linalg.norm(v)
    return v / norm if norm > 0 else v


def _power_iteration(
    cov: Array, tol: float, orthogonal_to: Array | None = None, iters: int = POWER_ITERATIONS
) -> Tuple[Array, float]:
    v = _seed_vector(cov.shape[0])
    if orthogonal_to is not None:
        v = v - (v @ orthogonal_to) * orthogonal_to
    value = 0.0
    for _ in range(iters):
        w = cov @ v
        if orthogonal_to is not None:
            w = w - (w @ orthogonal_to) * orthogonal_to
        norm = float(np.linalg.norm(w))
        if norm <= tol:
            return np.zeros_like(v), 0.0
        w /= norm
        converged = float(np.abs(w @ v)) > 1.0 - 1e-12
        v, value = w, norm
        if converged:
            break
    return v, value


def _origin(n: int, dim: int) -> PCAProjection:
    return PCAProjection(
        points=frozen_copy(np.zeros((n, 2))),
        variance=(0.0, 0.0),
        components=frozen_copy(np.zeros((2, dim))),
    )


def project_to_2d(vectors: Sequence[Sequence[float]] | Array) -> PCAProjection:
    """Project ``vectors`` (N × D) onto their top two principal components.

    Fewer than two rows, zero width or zero variance all yield the origin for
    every row. Axis signs are arbitrary but fixed within one call.
    """

    data = np.asarray(vectors, dtype=np.float64)
    if data.ndim == 1 and data.size == 0:
        data = data.reshape(0, 0)
    if data.ndim != 2:
        raise ValueError(f"expected a 2-D array of vectors, got shape {data.shape}")
    n, dim = data.shape
    if n < 2 or dim == 0:
        return _origin(n, dim)

    centered = data - data.mean(axis=0)
    # Mean round-off leaves residue around eps * |data| on constant columns.
    scale = float(np.abs(data).max())
    if float(np.abs(centered).max()) <= 1e-12 * scale:
        centered = np.zeros_like(centered)
    cov = centered.T @ centered / (n - 1)
    tol = float(np.trace(cov)) * _REL_TOL
    if tol <= 0:
        return _origin(n, dim)
    pc1, var1 = _power_iteration(cov, tol)
    pc2, var2 = _power_iteration(cov, tol, orthogonal_to=pc1 if var1 > 0 else None)
    components = np.vstack([pc1, pc2])
    points = centered @ components.T
    return PCAProjection(
        points=frozen_copy(points),
        variance=(var1, var2),
        components=frozen_copy(components),
    )


def project_activations(
    network: NeuralNetwork,
    inputs: Sequence[Sequence[float]] | Array,
    labels: Sequence[int] | Array,
    user_input: Sequence[float] | Array | None = None,
    *,
    layer: int = -1,
) -> ProjectionData:
    """Lay out one hidden layer's activations for a labelled sample set.

    The user's drawing, when given, is projected in the same call as the
    dataset (as an appended row) so that it shares the dataset's axes.
    """

    acts = network.hidden_activations(inputs, layer=layer)
    y = as_label_vector(labels, acts.shape[0])
    rows = acts
    if user_input is not None:
        user_acts = network.hidden_activations(np.asarray(user_input).reshape(1, -1), layer=layer)
        rows = np.vstack([acts, user_acts])
    points = project_to_2d(rows).points
    user_projection = None
    if user_input is not None:
        user_projection = (float(points[-1, 0]), float(points[-1, 1]))
        points = points[:-1]
    return ProjectionData(
        points=frozen_copy(points),
        labels=frozen_copy(y, dtype=np.int64),
        user_projection=user_projection,
    )


__all__ = ["PCAProjection", "project_activations", "project_to_2d"]
