"""Fully-connected softmax classifier with per-neuron ablation masks."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from .activations import Activation, get_activation, softmax, xavier_init
from .errors import ConfigurationError, DivergenceError, DivergenceWarning
from .losses import cross_entropy
from .types import (
    INPUT_SIZE,
    OUTPUT_CLASSES,
    Array,
    LayerParams,
    LayerState,
    NeuronStatus,
    Prediction,
    TrainingConfig,
    TrainingSnapshot,
    as_input_matrix,
    as_label_vector,
    frozen_copy,
)

_ACTIVE, _FROZEN, _KILLED = 0, 1, 2
_STATUS_CODES: Dict[NeuronStatus, int] = {
    NeuronStatus.ACTIVE: _ACTIVE,
    NeuronStatus.FROZEN: _FROZEN,
    NeuronStatus.KILLED: _KILLED,
}
_CODE_STATUS = {code: status for status, code in _STATUS_CODES.items()}
_DIVERGENCE_MODES = {"warn", "raise"}


@dataclass(frozen=True, eq=False)
class GradientTrace:
    """Backward-pass quantities for one layer of a single sample.

    ``delta`` is ``dL/dz`` for the layer's neurons and ``weight_grad`` the
    matching ``dL/dW``; both are copies.
    """

    layer_idx: int
    delta: Array
    weight_grad: Array
    activations: Array
    status: Array


class NeuralNetwork:
    """Feed-forward network: configured hidden layers plus a 10-way softmax.

    The network is the single owner of its parameter arrays. Every read API
    returns copies so that consumers holding a snapshot are unaffected by a
    later :meth:`train_batch`.
    """

    def __init__(
        self,
        input_size: int = INPUT_SIZE,
        config: TrainingConfig | Mapping[str, Any] | None = None,
        *,
        seed: int | None = None,
        divergence: str = "warn",
    ) -> None:
        if config is None:
            raise ConfigurationError("a TrainingConfig is required")
        if isinstance(input_size, bool) or not isinstance(input_size, (int, np.integer)):
            raise ConfigurationError(f"input_size must be an int, got {input_size!r}")
        if input_size <= 0:
            raise ConfigurationError(f"input_size must be positive, got {input_size}")
        if divergence not in _DIVERGENCE_MODES:
            raise ConfigurationError(
                f"divergence must be one of {sorted(_DIVERGENCE_MODES)}, got {divergence!r}"
            )
        self._input_size = int(input_size)
        self._config = TrainingConfig.coerce(config)
        self._divergence = divergence
        self.reset(seed=seed)

    # ------------------------------------------------------------------
    # Construction

    def reset(
        self,
        config: TrainingConfig | Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> None:
        """Discard all trained state and reinitialise the parameters."""

        if config is not None:
            self._config = TrainingConfig.coerce(config)
        self._rng = np.random.default_rng(seed)
        self._epoch = 0
        self._loss_history: List[float] = []
        self._accuracy_history: List[float] = []
        self._hidden_fns: List[Activation] = [
            get_activation(layer.activation) for layer in self._config.layers
        ]

        sizes = [self._input_size] + [layer.neurons for layer in self._config.layers]
        sizes.append(OUTPUT_CLASSES)
        self._weights: List[Array] = []
        self._biases: List[Array] = []
        for fan_in, fan_out in zip(sizes[:-1], sizes[1:]):
            self._weights.append(xavier_init(self._rng, fan_in, fan_out))
            self._biases.append(np.zeros(fan_out, dtype=np.float64))
        self._masks: List[Array] = [
            np.zeros(layer.neurons, dtype=np.int8) for layer in self._config.layers
        ]
        self._pre: List[Array] = [np.zeros(n, dtype=np.float64) for n in sizes[1:]]
        self._act: List[Array] = [np.zeros(n, dtype=np.float64) for n in sizes[1:]]

    # ------------------------------------------------------------------
    # Properties

    @property
    def config(self) -> TrainingConfig:
        return self._config

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def num_hidden(self) -> int:
        return len(self._config.layers)

    @property
    def activation_names(self) -> Tuple[str, ...]:
        return tuple(layer.activation for layer in self._config.layers)

    def get_epoch(self) -> int:
        return self._epoch

    def get_loss_history(self) -> List[float]:
        return list(self._loss_history)

    def get_accuracy_history(self) -> List[float]:
        return list(self._accuracy_history)

    # ------------------------------------------------------------------
    # Forward

    def _propagate(self, X: Array) -> Tuple[List[Array], List[Array]]:
        pres: List[Array] = []
        acts: List[Array] = []
        current = X
        last = len(self._weights) - 1
        with np.errstate(over="ignore", invalid="ignore"):
            for idx, (W, b) in enumerate(zip(self._weights, self._biases)):
                z = current @ W.T + b
                if idx == last:
                    a = softmax(z)
                else:
                    a = self._hidden_fns[idx](z)
                    killed = self._masks[idx] == _KILLED
                    if killed.any():
                        a[:, killed] = 0.0
                pres.append(z)
                acts.append(a)
                current = a
        return pres, acts

    def _single(self, x: Sequence[float] | Array) -> Array:
        X = as_input_matrix(x, self._input_size)
        if X.shape[0] != 1:
            raise ValueError(f"expected a single input of length {self._input_size}")
        return X

    def forward(self, x: Sequence[float] | Array) -> Array:
        """Run one sample through the network and return its probabilities.

        The per-layer pre-activation and activation buffers are overwritten.
        """

        X = self._single(x)
        pres, acts = self._propagate(X)
        self._pre = [z[0] for z in pres]
        self._act = [a[0] for a in acts]
        return self._act[-1].copy()

    def predict(self, x: Sequence[float] | Array) -> Prediction:
        probs = self.forward(x)
        layers = self._capture_layers()
        return Prediction(
            label=int(np.argmax(probs)),
            probabilities=frozen_copy(probs),
            layers=layers[:-1],
            output=layers[-1],
        )

    def predict_proba(self, inputs: Sequence[Sequence[float]] | Array) -> Array:
        """Vectorised probabilities for ``inputs``; forward buffers are untouched."""

        X = as_input_matrix(inputs, self._input_size)
        _, acts = self._propagate(X)
        return acts[-1]

    def hidden_activations(
        self, inputs: Sequence[Sequence[float]] | Array, layer: int = -1
    ) -> Array:
        """Return a fresh ``(N, width)`` matrix of one hidden layer's activations."""

        self._check_layer(layer if layer >= 0 else self.num_hidden + layer)
        X = as_input_matrix(inputs, self._input_size)
        _, acts = self._propagate(X)
        return acts[:-1][layer].copy()

    # ------------------------------------------------------------------
    # Backward

    def _backpropagate(
        self,
        X: Array,
        pres: List[Array],
        acts: List[Array],
        delta: Array,
        *,
        want_params: bool = True,
    ) -> Tuple[List[Array], List[Array], Array]:
        """Push ``delta`` (d objective / d logits) back to the input.

        Killed neurons have a constant output, so their delta is zeroed before
        it reaches the layer below.
        """

        n_layers = len(self._weights)
        grads_w: List[Array] = [np.empty(0)] * n_layers
        grads_b: List[Array] = [np.empty(0)] * n_layers
        with np.errstate(over="ignore", invalid="ignore"):
            for idx in reversed(range(n_layers)):
                a_prev = X if idx == 0 else acts[idx - 1]
                if want_params:
                    grads_w[idx] = delta.T @ a_prev
                    grads_b[idx] = delta.sum(axis=0)
                delta = delta @ self._weights[idx]
                if idx > 0:
                    hidden = idx - 1
                    delta = delta * self._hidden_fns[hidden].derivative(pres[hidden])
                    killed = self._masks[hidden] == _KILLED
                    if killed.any():
                        delta[:, killed] = 0.0
        return grads_w, grads_b, delta

    def train_batch(
        self, inputs: Sequence[Sequence[float]] | Array, labels: Sequence[int] | Array
    ) -> TrainingSnapshot:
        """One SGD step on ``inputs``; returns the epoch's snapshot.

        Gradients are summed over the batch and applied once, scaled by
        ``learning_rate / batch_size``. Rows belonging to frozen or killed
        neurons are left untouched.
        """

        X = as_input_matrix(inputs, self._input_size)
        n = X.shape[0]
        if n == 0:
            raise ValueError("train_batch needs at least one sample")
        y = as_label_vector(labels, n)

        pres, acts = self._propagate(X)
        probs = acts[-1]
        with np.errstate(invalid="ignore"):
            loss, delta = cross_entropy(probs, y)
            predicted = probs.argmax(axis=1)
        accuracy = float(np.mean(predicted == y))

        grads_w, grads_b, _ = self._backpropagate(X, pres, acts, delta)
        scale = self._config.learning_rate / n
        with np.errstate(over="ignore", invalid="ignore"):
            for idx, (gW, gb) in enumerate(zip(grads_w, grads_b)):
                if idx < self.num_hidden:
                    locked = self._masks[idx] != _ACTIVE
                    if locked.any():
                        gW[locked] = 0.0
                        gb[locked] = 0.0
                self._weights[idx] -= scale * gW
                self._biases[idx] -= scale * gb

        self._pre = [z[-1].copy() for z in pres]
        self._act = [a[-1].copy() for a in acts]
        self._epoch += 1
        self._loss_history.append(loss)
        self._accuracy_history.append(accuracy)

        last_probs = probs[-1]
        one_hot_pred = np.zeros(OUTPUT_CLASSES, dtype=np.int64)
        if np.all(np.isfinite(last_probs)):
            one_hot_pred[int(np.argmax(last_probs))] = 1
        layers = self._capture_layers()
        snapshot = TrainingSnapshot(
            epoch=self._epoch,
            loss=loss,
            accuracy=accuracy,
            layers=layers[:-1],
            output=layers[-1],
            predictions=frozen_copy(one_hot_pred, dtype=np.int64),
            output_probabilities=frozen_copy(last_probs),
        )
        if snapshot.diverged:
            self._on_divergence(loss)
        return snapshot

    def _on_divergence(self, loss: float) -> None:
        message = (
            f"training diverged at epoch {self._epoch}: loss={loss} "
            f"(learning_rate={self._config.learning_rate})"
        )
        if self._divergence == "raise":
            raise DivergenceError(message)
        warnings.warn(message, DivergenceWarning, stacklevel=3)

    def compute_input_gradient(self, x: Sequence[float] | Array, target_class: int) -> Array:
        """Gradient of ``log p[target_class]`` with respect to the input pixels."""

        if not 0 <= int(target_class) < OUTPUT_CLASSES:
            raise ValueError(f"target_class must lie in [0, {OUTPUT_CLASSES - 1}]")
        weights = np.zeros(OUTPUT_CLASSES, dtype=np.float64)
        weights[int(target_class)] = 1.0
        return self.compute_weighted_input_gradient(x, weights)

    def compute_weighted_input_gradient(
        self, x: Sequence[float] | Array, class_weights: Sequence[float] | Array
    ) -> Array:
        """Gradient of ``sum_c w_c log p[c]`` with respect to the input.

        By linearity this equals the weighted sum of the per-class gradients,
        obtained here with a single backward pass: ``d/dz = w - sum(w) * p``.
        """

        w = np.asarray(class_weights, dtype=np.float64)
        if w.shape != (OUTPUT_CLASSES,):
            raise ValueError(f"class_weights must have {OUTPUT_CLASSES} entries")
        X = self._single(x)
        pres, acts = self._propagate(X)
        self._pre = [z[0] for z in pres]
        self._act = [a[0] for a in acts]
        delta = (w - w.sum() * acts[-1]).reshape(1, -1)
        _, _, grad = self._backpropagate(X, pres, acts, delta, want_params=False)
        grad = grad[0]
        return np.where(np.isfinite(grad), grad, 0.0)

    def trace_gradients(self, x: Sequence[float] | Array, label: int) -> List[GradientTrace]:
        """Per-layer cross-entropy deltas and weight gradients for one sample.

        Read-only: parameters are not stepped. Index 0 is the first hidden
        layer, the last entry is the softmax layer.
        """

        X = self._single(x)
        y = as_label_vector([label], 1)
        pres, acts = self._propagate(X)
        self._pre = [z[0] for z in pres]
        self._act = [a[0] for a in acts]
        _, delta = cross_entropy(acts[-1], y)

        traces: List[GradientTrace] = []
        with np.errstate(over="ignore", invalid="ignore"):
            for idx in reversed(range(len(self._weights))):
                a_prev = X if idx == 0 else acts[idx - 1]
                status = (
                    self._masks[idx].copy()
                    if idx < self.num_hidden
                    else np.zeros(OUTPUT_CLASSES, dtype=np.int8)
                )
                traces.append(
                    GradientTrace(
                        layer_idx=idx,
                        delta=delta[0].copy(),
                        weight_grad=np.outer(delta[0], a_prev[0]),
                        activations=acts[idx][0].copy(),
                        status=status,
                    )
                )
                delta = delta @ self._weights[idx]
                if idx > 0:
                    hidden = idx - 1
                    delta = delta * self._hidden_fns[hidden].derivative(pres[hidden])
                    delta[:, self._masks[hidden] == _KILLED] = 0.0
        traces.reverse()
        return traces

    # ------------------------------------------------------------------
    # Masks

    def _check_layer(self, layer_idx: int) -> None:
        if not 0 <= layer_idx < self.num_hidden:
            raise IndexError(
                f"layer index {layer_idx} out of range for {self.num_hidden} hidden layers"
            )

    def _check_neuron(self, layer_idx: int, neuron_idx: int) -> None:
        self._check_layer(layer_idx)
        width = self._masks[layer_idx].shape[0]
        if not 0 <= neuron_idx < width:
            raise IndexError(
                f"neuron index {neuron_idx} out of range for layer {layer_idx} of width {width}"
            )

    def set_neuron_status(
        self, layer_idx: int, neuron_idx: int, status: NeuronStatus | str
    ) -> None:
        self._check_neuron(layer_idx, neuron_idx)
        self._masks[layer_idx][neuron_idx] = _STATUS_CODES[NeuronStatus.coerce(status)]

    def get_neuron_status(self, layer_idx: int, neuron_idx: int) -> NeuronStatus:
        self._check_neuron(layer_idx, neuron_idx)
        return _CODE_STATUS[int(self._masks[layer_idx][neuron_idx])]

    def get_neuron_statuses(self) -> Dict[Tuple[int, int], NeuronStatus]:
        """Return every non-active neuron as ``{(layer, neuron): status}``."""

        out: Dict[Tuple[int, int], NeuronStatus] = {}
        for layer_idx, mask in enumerate(self._masks):
            for neuron_idx in np.flatnonzero(mask):
                out[(layer_idx, int(neuron_idx))] = _CODE_STATUS[int(mask[neuron_idx])]
        return out

    def clear_all_masks(self) -> None:
        for mask in self._masks:
            mask.fill(_ACTIVE)

    # ------------------------------------------------------------------
    # Snapshots

    def _capture_layers(self) -> Tuple[LayerState, ...]:
        return tuple(
            LayerState.capture(W, b, z, a)
            for W, b, z, a in zip(self._weights, self._biases, self._pre, self._act)
        )

    def get_layers(self) -> Tuple[LayerState, ...]:
        """Copies of every layer, hidden layers first and the softmax layer last."""

        return self._capture_layers()

    def get_params(self) -> List[LayerParams]:
        return [
            LayerParams(weights=frozen_copy(W), biases=frozen_copy(b))
            for W, b in zip(self._weights, self._biases)
        ]


def init_network(
    config: TrainingConfig | Mapping[str, Any],
    input_size: int = INPUT_SIZE,
    *,
    seed: int | None = None,
    divergence: str = "warn",
) -> NeuralNetwork:
    """Build a fresh network; any previous network for ``config`` is simply dropped."""

    return NeuralNetwork(input_size, config, seed=seed, divergence=divergence)


__all__ = ["GradientTrace", "NeuralNetwork", "init_network"]
