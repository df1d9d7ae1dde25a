"""Seeding, splitting and batching helpers for digit datasets."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator, Mapping

import numpy as np

from ..core.types import Batch


def seed_everything(seed: int) -> np.random.Generator:
    """Seed Python and NumPy RNGs and return a generator."""

    random.seed(seed)
    np.random.seed(seed % (2**32 - 1))
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/evaluation partitions."""

    train: np.ndarray
    eval: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {"train": int(self.train.size), "eval": int(self.eval.size)}


def deterministic_split(n_samples: int, *, eval_split: float = 0.2, seed: int = 0) -> SplitIndices:
    """Return deterministic shuffled indices for the requested split ratio."""

    if not 0 <= eval_split < 1:
        raise ValueError("eval_split must be in [0, 1)")
    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)
    eval_size = int(round(n_samples * eval_split))
    # Ensure at least one sample per split when possible
    eval_size = min(max(eval_size, 1 if eval_split > 0 else 0), n_samples)
    if n_samples - eval_size <= 0:
        raise ValueError("Not enough samples for the requested split")
    return SplitIndices(train=np.sort(indices[eval_size:]), eval=np.sort(indices[:eval_size]))


def subset(batch: Batch, indices: np.ndarray) -> Batch:
    return Batch(inputs=batch.inputs[indices], labels=batch.labels[indices])


def batch_iterator(batch: Batch, *, batch_size: int, seed: int) -> Iterator[Batch]:
    """Yield deterministic minibatches by sampling with replacement."""

    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if len(batch) == 0:
        raise ValueError("cannot sample batches from an empty dataset")
    rng = np.random.default_rng(seed)
    while True:
        sampled = rng.integers(0, len(batch), size=batch_size)
        yield subset(batch, sampled)


__all__ = ["SplitIndices", "batch_iterator", "deterministic_split", "seed_everything", "subset"]
