"""Reproducible input corruptions for robustness probing."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..core.types import INPUT_DIM, INPUT_SIZE, Array

NOISE_KINDS = ("gaussian", "salt-pepper", "adversarial")
SALT_PEPPER_RATE = 0.15


def _check_kind(kind: str) -> None:
    if kind not in NOISE_KINDS:
        raise KeyError(f"Unknown noise kind {kind!r}. Available kinds: {', '.join(NOISE_KINDS)}")


def generate_noise_pattern(kind: str, seed: int, target_digit: int = 0) -> Array:
    """Raw noise signal of 784 values, before amplitude scaling.

    ``salt-pepper`` patterns hold ``+1`` (salt), ``-1`` (pepper) or ``0``.
    ``adversarial`` is a radial angular bias towards ``target_digit`` plus a
    little Gaussian noise.
    """

    _check_kind(kind)
    rng = np.random.default_rng(seed)
    if kind == "gaussian":
        return rng.standard_normal(INPUT_SIZE)
    if kind == "salt-pepper":
        draws = rng.random(INPUT_SIZE)
        pattern = np.zeros(INPUT_SIZE)
        pattern[draws < SALT_PEPPER_RATE] = 1.0
        pattern[(draws >= SALT_PEPPER_RATE) & (draws < 2 * SALT_PEPPER_RATE)] = -1.0
        return pattern

    centre = INPUT_DIM / 2
    ys, xs = np.divmod(np.arange(INPUT_SIZE), INPUT_DIM)
    dist = np.hypot(xs - centre, ys - centre) / centre
    angle = np.arctan2(ys - centre, xs - centre)
    target_angle = target_digit / 10 * 2 * np.pi
    return np.cos(angle - target_angle) * (1 - dist) + rng.standard_normal(INPUT_SIZE) * 0.3


def apply_noise(
    input: Sequence[float] | Array, pattern: Array, level: float, kind: str, seed: int
) -> Array:
    """Blend ``pattern`` into ``input`` at amplitude ``level``; result clamped to ``[0, 1]``.

    Salt-and-pepper flips each marked pixel to white or black with
    probability ``level`` instead of adding.
    """

    _check_kind(kind)
    x = np.asarray(input, dtype=np.float64).reshape(-1)
    p = np.asarray(pattern, dtype=np.float64).reshape(-1)
    if x.shape != p.shape:
        raise ValueError(f"pattern has {p.size} values, input has {x.size}")
    if kind == "salt-pepper":
        rng = np.random.default_rng(seed)
        flip = (np.abs(p) > 0.5) & (rng.random(x.size) < level)
        return np.where(flip, (p > 0).astype(np.float64), x)
    return np.clip(x + p * level, 0.0, 1.0)


__all__ = ["NOISE_KINDS", "apply_noise", "generate_noise_pattern"]
