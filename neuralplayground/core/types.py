"""Core typing contracts for neuralplayground."""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError

Array = np.ndarray

INPUT_DIM = 28
INPUT_SIZE = INPUT_DIM * INPUT_DIM
OUTPUT_CLASSES = 10
MAX_HIDDEN_LAYERS = 5
ACTIVATION_NAMES = ("relu", "sigmoid", "tanh")


def frozen_copy(values: Any, dtype=np.float64) -> Array:
    """Return a read-only copy of ``values``.

    Snapshots handed to callers must never alias the live network buffers, so
    every array stored on a record below goes through this helper.
    """

    out = np.array(values, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


class NeuronStatus(str, Enum):
    """Ablation state of a single hidden neuron."""

    ACTIVE = "active"
    FROZEN = "frozen"
    KILLED = "killed"

    @classmethod
    def coerce(cls, value: "NeuronStatus | str") -> "NeuronStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise ValueError(
                f"Unknown neuron status {value!r}; expected one of "
                f"{[s.value for s in cls]}"
            ) from exc


@dataclass(frozen=True)
class LayerConfig:
    """Width and nonlinearity of one hidden layer."""

    neurons: int
    activation: str = "relu"

    def __post_init__(self) -> None:
        if isinstance(self.neurons, bool) or not isinstance(self.neurons, (int, np.integer)):
            raise ConfigurationError(f"neurons must be an int, got {self.neurons!r}")
        if self.neurons <= 0:
            raise ConfigurationError(f"neurons must be positive, got {self.neurons}")
        if self.activation not in ACTIVATION_NAMES:
            raise ConfigurationError(
                f"Unknown activation {self.activation!r}; expected one of {ACTIVATION_NAMES}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LayerConfig":
        if "neurons" not in data:
            raise ConfigurationError("layer config is missing 'neurons'")
        return cls(neurons=data["neurons"], activation=str(data.get("activation", "relu")))


@dataclass(frozen=True)
class TrainingConfig:
    """Topology and optimiser settings; changing either means a new network."""

    learning_rate: float
    layers: Tuple[LayerConfig, ...]

    def __post_init__(self) -> None:
        layers = tuple(
            layer if isinstance(layer, LayerConfig) else LayerConfig.from_mapping(layer)
            for layer in self.layers
        )
        object.__setattr__(self, "layers", layers)
        try:
            lr = float(self.learning_rate)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"learning_rate must be a number, got {self.learning_rate!r}"
            ) from exc
        if not math.isfinite(lr) or lr <= 0:
            raise ConfigurationError(f"learning_rate must be finite and > 0, got {lr}")
        object.__setattr__(self, "learning_rate", lr)
        if not layers:
            raise ConfigurationError("a network needs at least one hidden layer")
        if len(layers) > MAX_HIDDEN_LAYERS:
            raise ConfigurationError(
                f"at most {MAX_HIDDEN_LAYERS} hidden layers are supported, got {len(layers)}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TrainingConfig":
        """Build a config from a preset mapping.

        Both ``learning_rate`` and the camel-cased ``learningRate`` are
        accepted; the latter is what front-end presets are written in.
        """

        if "learning_rate" in data:
            lr = data["learning_rate"]
        elif "learningRate" in data:
            lr = data["learningRate"]
        elif "lr" in data:
            warnings.warn(
                "'lr' is deprecated in model configs; use 'learning_rate'",
                DeprecationWarning,
                stacklevel=2,
            )
            lr = data["lr"]
        else:
            raise ConfigurationError("config is missing 'learning_rate'")
        layers = data.get("layers")
        if layers is None:
            raise ConfigurationError("config is missing 'layers'")
        return cls(learning_rate=lr, layers=tuple(layers))

    @classmethod
    def coerce(cls, value: "TrainingConfig | Mapping[str, Any]") -> "TrainingConfig":
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        raise ConfigurationError(f"Cannot build a TrainingConfig from {type(value).__name__}")

    def to_dict(self) -> dict:
        return {
            "learning_rate": self.learning_rate,
            "layers": [
                {"neurons": int(layer.neurons), "activation": layer.activation}
                for layer in self.layers
            ],
        }


@dataclass(frozen=True, eq=False)
class LayerState:
    """Point-in-time copy of one layer's parameters and forward buffers."""

    weights: Array
    biases: Array
    pre_activations: Array
    activations: Array

    @classmethod
    def capture(
        cls, weights: Array, biases: Array, pre_activations: Array, activations: Array
    ) -> "LayerState":
        return cls(
            weights=frozen_copy(weights),
            biases=frozen_copy(biases),
            pre_activations=frozen_copy(pre_activations),
            activations=frozen_copy(activations),
        )


@dataclass(frozen=True, eq=False)
class LayerParams:
    """Learnable parameters of one layer, detached from any network."""

    weights: Array
    biases: Array


@dataclass(frozen=True, eq=False)
class Prediction:
    """Result of :meth:`NeuralNetwork.predict`.

    ``layers`` holds the hidden layers only, indexed like the neuron masks;
    the softmax layer lives in ``output``.
    """

    label: int
    probabilities: Array
    layers: Tuple[LayerState, ...]
    output: LayerState

    @property
    def all_layers(self) -> Tuple[LayerState, ...]:
        return self.layers + (self.output,)


@dataclass(frozen=True, eq=False)
class TrainingSnapshot:
    """Immutable record produced by every :meth:`NeuralNetwork.train_batch` call."""

    epoch: int
    loss: float
    accuracy: float
    layers: Tuple[LayerState, ...]
    output: LayerState
    predictions: Array
    output_probabilities: Array

    @property
    def all_layers(self) -> Tuple[LayerState, ...]:
        return self.layers + (self.output,)

    @property
    def diverged(self) -> bool:
        return not math.isfinite(self.loss)


@dataclass(frozen=True)
class Batch:
    """Labelled digit images: ``inputs[N][784]`` and ``labels[N]``."""

    inputs: Array
    labels: Array

    def __len__(self) -> int:
        return int(self.labels.shape[0])


@dataclass(frozen=True, eq=False)
class DreamResult:
    """Synthesised input image and the target confidence at each ascent step."""

    image: Array
    confidence_history: Array


@dataclass(frozen=True, eq=False)
class ProjectionData:
    """2-D activation-space layout of a labelled sample set."""

    points: Array
    labels: Array
    user_projection: Tuple[float, float] | None = None


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`neuralplayground.training.pipelines.run_pipeline`."""

    epochs: int
    metrics_path: str
    summary_path: str = ""
    final_loss: float = float("nan")
    final_accuracy: float = 0.0
    extras: Mapping[str, Any] = field(default_factory=dict)


def as_input_matrix(inputs: Sequence[Sequence[float]] | Array, input_size: int) -> Array:
    """Coerce ``inputs`` to a float64 ``(N, input_size)`` matrix or raise ``ValueError``."""

    arr = np.asarray(inputs, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2 or arr.shape[1] != input_size:
        raise ValueError(
            f"expected inputs of shape (N, {input_size}), got {np.shape(inputs)}"
        )
    return arr


def as_label_vector(labels: Sequence[int] | Array, n: int) -> Array:
    arr = np.asarray(labels)
    if arr.ndim != 1 or arr.shape[0] != n:
        raise ValueError(f"expected {n} labels, got shape {arr.shape}")
    if arr.size and not np.issubdtype(arr.dtype, np.integer):
        if not np.all(np.equal(np.mod(arr, 1), 0)):
            raise ValueError("labels must be integers")
    arr = arr.astype(np.int64)
    if arr.size and (arr.min() < 0 or arr.max() >= OUTPUT_CLASSES):
        raise ValueError(f"labels must lie in [0, {OUTPUT_CLASSES - 1}]")
    return arr


__all__ = [
    "ACTIVATION_NAMES",
    "Array",
    "Batch",
    "DreamResult",
    "INPUT_DIM",
    "INPUT_SIZE",
    "LayerConfig",
    "LayerParams",
    "LayerState",
    "MAX_HIDDEN_LAYERS",
    "NeuronStatus",
    "OUTPUT_CLASSES",
    "Prediction",
    "ProjectionData",
    "RunResult",
    "TrainingConfig",
    "TrainingSnapshot",
    "as_input_matrix",
    "as_label_vector",
    "frozen_copy",
]
