"""Decision-boundary maps between two digit exemplars."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import OUTPUT_CLASSES, Array, frozen_copy

# Cells where the two classes' confidences differ by less than this are boundary cells.
BOUNDARY_MARGIN = 0.15


@dataclass(frozen=True)
class BoundaryCell:
    label: int
    conf_a: float
    conf_b: float
    max_conf: float

    @property
    def is_boundary(self) -> bool:
        return abs(self.conf_a - self.conf_b) < BOUNDARY_MARGIN


@dataclass(frozen=True, eq=False)
class DecisionBoundaryResult:
    """``resolution × resolution`` grid indexed ``[y][x]``.

    ``x`` walks the blend from exemplar A (column 0) to exemplar B, ``y`` walks
    the secondary axis from ``-strength`` to ``+strength``.
    """

    labels: Array
    conf_a: Array
    conf_b: Array
    max_conf: Array
    resolution: int
    digit_a: int
    digit_b: int

    def cell(self, y: int, x: int) -> BoundaryCell:
        return BoundaryCell(
            label=int(self.labels[y, x]),
            conf_a=float(self.conf_a[y, x]),
            conf_b=float(self.conf_b[y, x]),
            max_conf=float(self.max_conf[y, x]),
        )

    @property
    def boundary_mask(self) -> Array:
        return np.abs(self.conf_a - self.conf_b) < BOUNDARY_MARGIN

    @property
    def grid(self) -> list[list[BoundaryCell]]:
        return [
            [self.cell(y, x) for x in range(self.resolution)]
            for y in range(self.resolution)
        ]


def exemplar_pair_axis(second_a: Sequence[float] | Array, second_b: Sequence[float] | Array) -> Array:
    """Secondary axis from a second pair of exemplars: ``(A2 - B2) / 2``."""

    return (np.asarray(second_a, dtype=np.float64) - np.asarray(second_b, dtype=np.float64)) * 0.5


def orthogonal_noise_axis(
    exemplar_a: Array, exemplar_b: Array, rng: np.random.Generator | None = None
) -> Array:
    """Gaussian direction orthogonal to ``B - A`` with half its norm."""

    rng = rng if rng is not None else np.random.default_rng()
    blend = exemplar_b - exemplar_a
    noise = rng.standard_normal(blend.shape[0])
    blend_norm_sq = float(blend @ blend)
    if blend_norm_sq > 0:
        noise -= (noise @ blend) / blend_norm_sq * blend
        scale = 0.5 * np.sqrt(blend_norm_sq)
    else:
        scale = 0.5
    noise_norm = float(np.linalg.norm(noise))
    return noise * (scale / noise_norm) if noise_norm > 0 else noise


def compute_decision_boundary(
    network: NeuralNetwork,
    exemplar_a: Sequence[float] | Array,
    exemplar_b: Sequence[float] | Array,
    digit_a: int,
    digit_b: int,
    resolution: int = 32,
    *,
    axis: Sequence[float] | Array | None = None,
    strength: float = 0.3,
    rng: np.random.Generator | None = None,
) -> DecisionBoundaryResult:
    """Classify a grid of inputs spanning the A↔B blend and a secondary axis.

    Every grid input is clamped to ``[0, 1]`` before classification.
    """

    if resolution < 2:
        raise ValueError(f"resolution must be >= 2, got {resolution}")
    for digit in (digit_a, digit_b):
        if not 0 <= int(digit) < OUTPUT_CLASSES:
            raise ValueError(f"digit must lie in [0, {OUTPUT_CLASSES - 1}], got {digit}")
    a = np.asarray(exemplar_a, dtype=np.float64).reshape(-1)
    b = np.asarray(exemplar_b, dtype=np.float64).reshape(-1)
    if a.shape != (network.input_size,) or b.shape != a.shape:
        raise ValueError(f"exemplars must have {network.input_size} pixels")
    if axis is None:
        secondary = orthogonal_noise_axis(a, b, rng)
    else:
        secondary = np.asarray(axis, dtype=np.float64).reshape(-1)
        if secondary.shape != a.shape:
            raise ValueError(f"axis must have {network.input_size} entries")

    t = np.linspace(0.0, 1.0, resolution)
    perp = (t - 0.5) * 2.0 * strength
    # grid[y, x] = blend(x) + perp(y) * axis
    base = (1.0 - t)[:, None] * a + t[:, None] * b
    inputs = base[None, :, :] + perp[:, None, None] * secondary[None, None, :]
    inputs = np.clip(inputs, 0.0, 1.0).reshape(resolution * resolution, -1)

    probs = network.predict_proba(inputs).reshape(resolution, resolution, OUTPUT_CLASSES)
    return DecisionBoundaryResult(
        labels=frozen_copy(probs.argmax(axis=2), dtype=np.int64),
        conf_a=frozen_copy(probs[:, :, int(digit_a)]),
        conf_b=frozen_copy(probs[:, :, int(digit_b)]),
        max_conf=frozen_copy(probs.max(axis=2)),
        resolution=int(resolution),
        digit_a=int(digit_a),
        digit_b=int(digit_b),
    )


__all__ = [
    "BOUNDARY_MARGIN",
    "BoundaryCell",
    "DecisionBoundaryResult",
    "compute_decision_boundary",
    "exemplar_pair_axis",
    "orthogonal_noise_axis",
]
