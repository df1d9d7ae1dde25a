"""Multi-class "chimera" dreaming: ascend a weighted blend of class log-probabilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import OUTPUT_CLASSES, Array, frozen_copy
from .gradients import _check_steps, _start_image

# Classes whose normalised weight is below this contribute nothing.
WEIGHT_EPSILON = 0.01
ZERO_SUM_TOL = 1e-12


@dataclass(frozen=True, eq=False)
class ChimeraResult:
    image: Array
    confidence_history: Array
    final_confidence: Array


@dataclass(frozen=True)
class ChimeraPreset:
    name: str
    description: str
    weights: Tuple[float, ...]


def _blend(*digits: int) -> Tuple[float, ...]:
    return tuple(1.0 if d in digits else 0.0 for d in range(OUTPUT_CLASSES))


CHIMERA_PRESETS: Tuple[ChimeraPreset, ...] = (
    ChimeraPreset("3 + 8", "Round digits: what joins them?", _blend(3, 8)),
    ChimeraPreset("1 + 7", "Angular digits: vertical meets diagonal", _blend(1, 7)),
    ChimeraPreset("4 + 9", "Similar tops: which wins?", _blend(4, 9)),
    ChimeraPreset("5 + 6", "Curvy siblings with a round bottom", _blend(5, 6)),
    ChimeraPreset("0 + 8", "Loops: one ring or two?", _blend(0, 8)),
    ChimeraPreset("All Digits", "Every class equally weighted", _blend(*range(OUTPUT_CLASSES))),
)


def normalize_class_weights(class_weights: Sequence[float] | Array) -> Array | None:
    """Scale ``class_weights`` by the magnitude of their sum and drop negligible classes.

    The sign of each weight is kept, so a negative total still suppresses the
    classes it names. Returns ``None`` when the weights sum to (numerically)
    zero, the degenerate case in which there is no ascent direction.
    """

    w = np.asarray(class_weights, dtype=np.float64)
    if w.shape != (OUTPUT_CLASSES,):
        raise ValueError(f"class_weights must have {OUTPUT_CLASSES} entries, got {w.shape}")
    if not np.all(np.isfinite(w)):
        raise ValueError("class_weights must be finite")
    total = float(w.sum())
    if abs(total) < ZERO_SUM_TOL:
        return None
    normalized = w / abs(total)
    normalized[np.abs(normalized) < WEIGHT_EPSILON] = 0.0
    return normalized


def dream_chimera(
    network: NeuralNetwork,
    class_weights: Sequence[float] | Array,
    steps: int = 80,
    lr: float = 0.5,
    start_image: Sequence[float] | Array | None = None,
    *,
    rng: np.random.Generator | None = None,
    weight_decay: float = 0.001,
    lr_decay: float = 0.998,
) -> ChimeraResult:
    """Gradient ascent towards several classes at once.

    ``confidence_history[i]`` is the full probability vector before step ``i``.
    If the weights sum to zero the start image comes back unchanged with an
    empty history.
    """

    _check_steps(steps, lr)
    weights = normalize_class_weights(class_weights)
    image = _start_image(network, start_image, rng)

    if weights is None:
        return ChimeraResult(
            image=frozen_copy(image),
            confidence_history=frozen_copy(np.zeros((0, OUTPUT_CLASSES))),
            final_confidence=frozen_copy(network.forward(image)),
        )

    history = np.zeros((steps, OUTPUT_CLASSES), dtype=np.float64)
    current_lr = float(lr)
    for step in range(steps):
        history[step] = network.forward(image)
        grad = network.compute_weighted_input_gradient(image, weights)
        image += current_lr * grad - weight_decay * image
        np.clip(image, 0.0, 1.0, out=image)
        current_lr *= lr_decay

    return ChimeraResult(
        image=frozen_copy(image),
        confidence_history=frozen_copy(history),
        final_confidence=frozen_copy(network.forward(image)),
    )


__all__ = [
    "CHIMERA_PRESETS",
    "ChimeraPreset",
    "ChimeraResult",
    "WEIGHT_EPSILON",
    "dream_chimera",
    "normalize_class_weights",
]
