"""Fixed-capacity training history: epoch parameters, weight frames, gradient flow."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Generic, List, Optional, Tuple, TypeVar

import numpy as np

from ..analysis.gradient_flow import GradientFlowSnapshot
from ..core.errors import ConfigurationError
from ..core.types import Array, LayerParams, TrainingSnapshot, frozen_copy

T = TypeVar("T")


def _check_positive(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"{name} must be a positive int, got {value!r}")
    return value


@dataclass(frozen=True)
class EpochSnapshot:
    """Learnable parameters and metrics of one recorded epoch, softmax layer included."""

    epoch: int
    loss: float
    accuracy: float
    params: Tuple[LayerParams, ...]


@dataclass(frozen=True, eq=False)
class WeightFrame:
    """First hidden layer's weights flattened row-major to float32."""

    epoch: int
    loss: float
    accuracy: float
    weights: Array
    neuron_count: int
    input_size: int

    def neuron(self, index: int) -> Array:
        if not 0 <= index < self.neuron_count:
            raise IndexError(f"neuron index {index} out of range for {self.neuron_count} neurons")
        start = index * self.input_size
        return self.weights[start : start + self.input_size]


class _RingBuffer(Generic[T]):
    def __init__(self, capacity: int, record_interval: int = 1) -> None:
        self.capacity = _check_positive("capacity", capacity)
        self.record_interval = _check_positive("record_interval", record_interval)
        self._items: Deque[T] = deque(maxlen=self.capacity)
        self._since_last = 0

    def _due(self) -> bool:
        self._since_last += 1
        if self._since_last < self.record_interval:
            return False
        self._since_last = 0
        return True

    def _get(self, index: int) -> Optional[T]:
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def __len__(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        self._items.clear()
        self._since_last = 0


class EpochRecorder(_RingBuffer[EpochSnapshot]):
    """Keep the most recent ``capacity`` epoch snapshots for replay.

    Every ``record_interval``-th call to :meth:`record` is kept; once full the
    oldest entry is evicted.
    """

    def __init__(self, capacity: int = 200, record_interval: int = 1) -> None:
        super().__init__(capacity, record_interval)

    def record(self, snapshot: TrainingSnapshot) -> bool:
        if not self._due():
            return False
        params = tuple(
            LayerParams(weights=frozen_copy(layer.weights), biases=frozen_copy(layer.biases))
            for layer in snapshot.all_layers
        )
        self._items.append(
            EpochSnapshot(
                epoch=snapshot.epoch,
                loss=float(snapshot.loss),
                accuracy=float(snapshot.accuracy),
                params=params,
            )
        )
        return True

    def get_timeline(self) -> List[EpochSnapshot]:
        return list(self._items)

    def get_snapshot(self, index: int) -> Optional[EpochSnapshot]:
        return self._get(index)


class WeightEvolutionRecorder(_RingBuffer[WeightFrame]):
    """Filmstrip of the first hidden layer's weights."""

    def __init__(self, capacity: int = 200, record_interval: int = 1) -> None:
        super().__init__(capacity, record_interval)

    def record(self, snapshot: TrainingSnapshot) -> bool:
        if not snapshot.layers or not self._due():
            return False
        weights = np.asarray(snapshot.layers[0].weights)
        if weights.size == 0:
            return False
        flat = weights.astype(np.float32).reshape(-1)
        flat.setflags(write=False)
        self._items.append(
            WeightFrame(
                epoch=snapshot.epoch,
                loss=float(snapshot.loss),
                accuracy=float(snapshot.accuracy),
                weights=flat,
                neuron_count=int(weights.shape[0]),
                input_size=int(weights.shape[1]),
            )
        )
        return True

    def get_frames(self) -> List[WeightFrame]:
        return list(self._items)

    def get_frame(self, index: int) -> Optional[WeightFrame]:
        return self._get(index)


def compute_weight_delta(frame_a: WeightFrame, frame_b: WeightFrame, neuron_index: int) -> float:
    """Mean absolute change of one neuron's incoming weights between two frames."""

    if frame_a.input_size != frame_b.input_size:
        raise ValueError("frames come from layers of different input size")
    a = frame_a.neuron(neuron_index).astype(np.float64)
    b = frame_b.neuron(neuron_index).astype(np.float64)
    return float(np.mean(np.abs(b - a)))


class GradientFlowHistory(_RingBuffer[GradientFlowSnapshot]):
    def __init__(self, capacity: int = 100) -> None:
        super().__init__(capacity)

    def push(self, snapshot: GradientFlowSnapshot) -> None:
        self._items.append(snapshot)

    def get_all(self) -> List[GradientFlowSnapshot]:
        return list(self._items)

    def get_latest(self) -> Optional[GradientFlowSnapshot]:
        return self._items[-1] if self._items else None


__all__ = [
    "EpochRecorder",
    "EpochSnapshot",
    "GradientFlowHistory",
    "WeightEvolutionRecorder",
    "WeightFrame",
    "compute_weight_delta",
]
