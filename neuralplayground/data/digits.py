"""Procedural stroke-drawn digits used as the built-in training set."""

from __future__ import annotations

import math
from typing import Callable, Dict

import numpy as np

from ..core.types import INPUT_DIM, INPUT_SIZE, OUTPUT_CLASSES, Array, Batch, frozen_copy

INK = 0.8
PIXEL_NOISE = 0.05
JITTER = 1.5


class _Canvas:
    """28×28 accumulation buffer with thick lines and arcs."""

    def __init__(self) -> None:
        self.pixels = np.zeros((INPUT_DIM, INPUT_DIM), dtype=np.float64)

    def dab(self, x: int, y: int, thickness: int = 2) -> None:
        lo, hi = -thickness + 1, thickness
        x0, x1 = max(x + lo, 0), min(x + hi, INPUT_DIM)
        y0, y1 = max(y + lo, 0), min(y + hi, INPUT_DIM)
        if x0 < x1 and y0 < y1:
            block = self.pixels[y0:y1, x0:x1]
            np.minimum(block + INK, 1.0, out=block)

    def line(self, x1: float, y1: float, x2: float, y2: float, thickness: int = 2) -> None:
        steps = int(max(abs(x2 - x1), abs(y2 - y1)) * 2)
        for i in range(steps + 1):
            t = 0.0 if steps == 0 else i / steps
            self.dab(round(x1 + (x2 - x1) * t), round(y1 + (y2 - y1) * t), thickness)

    def arc(self, cx: float, cy: float, r: float, start: float, end: float, thickness: int = 2) -> None:
        steps = int(max(20, abs(end - start) * r))
        for i in range(steps + 1):
            angle = start + (end - start) * (i / steps)
            self.dab(round(cx + r * math.cos(angle)), round(cy + r * math.sin(angle)), thickness)


def _strokes(canvas: _Canvas, j: Callable[[], float]) -> Dict[int, Callable[[], None]]:
    pi = math.pi
    return {
        0: lambda: canvas.arc(14 + j(), 14 + j(), 7 + j(), 0, 2 * pi),
        1: lambda: (
            canvas.line(14 + j(), 4 + j(), 14 + j(), 24 + j()),
            canvas.line(11 + j(), 7 + j(), 14 + j(), 4 + j()),
            canvas.line(10, 24, 18, 24),
        ),
        2: lambda: (
            canvas.arc(14 + j(), 10 + j(), 6, -pi, 0.3),
            canvas.line(19 + j(), 12 + j(), 8 + j(), 24 + j()),
            canvas.line(8, 24, 20 + j(), 24 + j()),
        ),
        3: lambda: (
            canvas.arc(14 + j(), 10 + j(), 5 + j(), -pi * 0.8, pi * 0.5),
            canvas.arc(14 + j(), 18 + j(), 5 + j(), -pi * 0.5, pi * 0.8),
        ),
        4: lambda: (
            canvas.line(18 + j(), 4 + j(), 8 + j(), 16 + j()),
            canvas.line(8 + j(), 16 + j(), 22 + j(), 16 + j()),
            canvas.line(18 + j(), 4 + j(), 18 + j(), 24 + j()),
        ),
        5: lambda: (
            canvas.line(18 + j(), 5 + j(), 9 + j(), 5 + j()),
            canvas.line(9 + j(), 5 + j(), 9 + j(), 13 + j()),
            canvas.arc(14 + j(), 17 + j(), 6, -pi * 0.6, pi * 0.7),
        ),
        6: lambda: (
            canvas.arc(14 + j(), 18 + j(), 6, 0, 2 * pi),
            canvas.line(8 + j(), 18 + j(), 12 + j(), 5 + j()),
        ),
        7: lambda: (
            canvas.line(8 + j(), 5 + j(), 20 + j(), 5 + j()),
            canvas.line(20 + j(), 5 + j(), 12 + j(), 24 + j()),
        ),
        8: lambda: (
            canvas.arc(14 + j(), 10 + j(), 5, 0, 2 * pi),
            canvas.arc(14 + j(), 19 + j(), 5, 0, 2 * pi),
        ),
        9: lambda: (
            canvas.arc(14 + j(), 10 + j(), 6, 0, 2 * pi),
            canvas.line(20 + j(), 10 + j(), 16 + j(), 24 + j()),
        ),
    }


def generate_digit(digit: int, rng: np.random.Generator | None = None) -> Array:
    """Draw one jittered ``digit`` as a flat 784-pixel image in ``[0, 1]``."""

    if not 0 <= int(digit) < OUTPUT_CLASSES:
        raise ValueError(f"digit must lie in [0, {OUTPUT_CLASSES - 1}], got {digit}")
    rng = rng if rng is not None else np.random.default_rng()
    canvas = _Canvas()

    def jitter() -> float:
        return (float(rng.random()) - 0.5) * JITTER

    _strokes(canvas, jitter)[int(digit)]()
    noisy = canvas.pixels.reshape(-1) + (rng.random(INPUT_SIZE) - 0.5) * PIXEL_NOISE
    return np.clip(noisy, 0.0, 1.0)


def generate_training_data(samples_per_digit: int = 15, seed: int | None = None) -> Batch:
    """``samples_per_digit`` images of every digit, grouped by class 0..9."""

    if samples_per_digit < 0:
        raise ValueError(f"samples_per_digit must be >= 0, got {samples_per_digit}")
    rng = np.random.default_rng(seed)
    n = samples_per_digit * OUTPUT_CLASSES
    inputs = np.zeros((n, INPUT_SIZE), dtype=np.float64)
    labels = np.repeat(np.arange(OUTPUT_CLASSES, dtype=np.int64), samples_per_digit)
    for row, digit in enumerate(labels):
        inputs[row] = generate_digit(int(digit), rng)
    return Batch(inputs=frozen_copy(inputs), labels=frozen_copy(labels, dtype=np.int64))


def generate_exemplar(digit: int, rng: np.random.Generator | None = None, samples: int = 5) -> Array:
    """Average of ``samples`` drawings; a cleaner prototype for boundary maps."""

    if samples < 1:
        raise ValueError(f"samples must be >= 1, got {samples}")
    rng = rng if rng is not None else np.random.default_rng()
    return np.mean([generate_digit(digit, rng) for _ in range(samples)], axis=0)


__all__ = ["generate_digit", "generate_exemplar", "generate_training_data"]
