"""Input-space gradient views: saliency maps and class "dreams".

Both operate on a trained :class:`~neuralplayground.core.network.NeuralNetwork`
through :meth:`compute_input_gradient`; the network parameters are treated as
constants and never stepped.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import OUTPUT_CLASSES, Array, DreamResult, frozen_copy


def saliency(
    network: NeuralNetwork,
    x: Sequence[float] | Array,
    label: int,
    *,
    normalize: bool = True,
) -> Array:
    """Return ``|d log p[label] / d x|`` as a float32 map.

    With ``normalize`` the map is divided by its maximum so it lies in
    ``[0, 1]``; an all-zero gradient stays all zero.
    """

    grad = network.compute_input_gradient(x, label)
    out = np.abs(grad).astype(np.float32)
    if normalize:
        peak = float(out.max()) if out.size else 0.0
        if peak > 0:
            out /= peak
    return out


compute_saliency = saliency


def initial_noise(size: int, rng: np.random.Generator | None = None) -> Array:
    """Faint uniform noise in ``[0.1, 0.4]`` used as the default ascent start."""

    rng = rng if rng is not None else np.random.default_rng()
    return rng.random(size) * 0.3 + 0.1


def _start_image(
    network: NeuralNetwork,
    start_image: Sequence[float] | Array | None,
    rng: np.random.Generator | None,
) -> Array:
    if start_image is None:
        return initial_noise(network.input_size, rng)
    image = np.array(start_image, dtype=np.float64, copy=True).reshape(-1)
    if image.shape[0] != network.input_size:
        raise ValueError(
            f"start_image must have {network.input_size} pixels, got {image.shape[0]}"
        )
    return image


def _check_steps(steps: int, lr: float) -> None:
    if steps < 0:
        raise ValueError(f"steps must be >= 0, got {steps}")
    if not np.isfinite(lr):
        raise ValueError(f"lr must be finite, got {lr}")


def dream(
    network: NeuralNetwork,
    target_class: int,
    steps: int = 100,
    lr: float = 0.5,
    start_image: Sequence[float] | Array | None = None,
    *,
    rng: np.random.Generator | None = None,
    weight_decay: float = 0.001,
    lr_decay: float = 0.998,
) -> DreamResult:
    """Synthesise an input that the network reads as ``target_class``.

    Each step records ``p[target_class]`` for the current image, then takes a
    gradient-ascent step on ``log p[target_class]`` with a small L2 pull
    towards black, clamps every pixel to ``[0, 1]`` and decays the step size.
    """

    if not 0 <= int(target_class) < OUTPUT_CLASSES:
        raise ValueError(f"target_class must lie in [0, {OUTPUT_CLASSES - 1}]")
    _check_steps(steps, lr)
    image = _start_image(network, start_image, rng)
    history = np.zeros(steps, dtype=np.float64)
    current_lr = float(lr)

    for step in range(steps):
        history[step] = network.forward(image)[int(target_class)]
        grad = network.compute_input_gradient(image, target_class)
        image += current_lr * grad - weight_decay * image
        np.clip(image, 0.0, 1.0, out=image)
        current_lr *= lr_decay

    return DreamResult(image=frozen_copy(image), confidence_history=frozen_copy(history))


__all__ = ["compute_saliency", "dream", "initial_noise", "saliency"]
