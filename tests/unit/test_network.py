import math

import numpy as np
import pytest

from neuralplayground.core.activations import softmax
from neuralplayground.core.errors import ConfigurationError, DivergenceError, DivergenceWarning
from neuralplayground.core.network import NeuralNetwork, init_network
from neuralplayground.core.types import NeuronStatus, TrainingConfig
from neuralplayground.data.digits import generate_training_data


def _block_dataset(n_per_class=10, classes=4, seed=0):
    rng = np.random.default_rng(seed)
    inputs, labels = [], []
    for c in range(classes):
        for _ in range(n_per_class):
            x = rng.random(784) * 0.05
            x[c * 100 : (c + 1) * 100] = 1.0
            inputs.append(x)
            labels.append(c)
    return np.asarray(inputs), np.asarray(labels)


def _config(lr=0.1, layers=((16, "relu"),)):
    return {
        "learning_rate": lr,
        "layers": [{"neurons": n, "activation": a} for n, a in layers],
    }


def test_predict_probabilities_form_a_distribution():
    net = init_network(_config(layers=((32, "relu"), (16, "sigmoid"))), seed=0)
    x = np.random.default_rng(1).random(784)
    probs = net.predict(x).probabilities
    assert probs.shape == (10,)
    assert abs(probs.sum() - 1.0) < 1e-6
    assert np.all((probs >= 0) & (probs <= 1))


def test_softmax_is_shift_invariant_and_stable():
    z = np.array([1000.0, 1001.0, 999.0])
    p = softmax(z)
    assert np.allclose(p, softmax(z - 1000.0))
    assert abs(p.sum() - 1.0) < 1e-12


def test_killed_neuron_outputs_zero_until_cleared():
    net = init_network(_config(layers=((8, "sigmoid"),)), seed=3)
    x = np.random.default_rng(0).random(784)
    net.set_neuron_status(0, 5, "killed")
    for _ in range(3):
        assert net.predict(x).layers[0].activations[5] == 0.0
    net.train_batch(x.reshape(1, -1), [2])
    assert net.predict(x).layers[0].activations[5] == 0.0
    net.clear_all_masks()
    assert net.predict(x).layers[0].activations[5] != 0.0


def test_frozen_neuron_keeps_incoming_weights():
    X, y = _block_dataset()
    net = init_network(_config(layers=((16, "sigmoid"),)), seed=0)
    net.set_neuron_status(0, 3, NeuronStatus.FROZEN)
    before = net.get_layers()[0]
    net.train_batch(X, y)
    after = net.get_layers()[0]
    assert np.array_equal(before.weights[3], after.weights[3])
    assert before.biases[3] == after.biases[3]
    assert not np.array_equal(before.weights[2], after.weights[2])


def test_killed_neuron_is_excluded_from_updates():
    X, y = _block_dataset()
    net = init_network(_config(layers=((12, "sigmoid"), (8, "sigmoid"))), seed=1)
    net.set_neuron_status(0, 4, NeuronStatus.KILLED)
    net.set_neuron_status(1, 2, NeuronStatus.KILLED)
    before = net.get_params()
    net.train_batch(X, y)
    after = net.get_params()

    assert np.array_equal(before[0].weights[4], after[0].weights[4])
    assert before[0].biases[4] == after[0].biases[4]
    assert np.array_equal(before[1].weights[:, 4], after[1].weights[:, 4])
    assert np.array_equal(before[1].weights[2], after[1].weights[2])
    assert np.array_equal(before[2].weights[:, 2], after[2].weights[:, 2])
    assert not np.array_equal(before[0].weights[3], after[0].weights[3])
    assert not np.array_equal(before[2].weights[:, 1], after[2].weights[:, 1])


def test_mask_indices_are_bounds_checked():
    net = init_network(_config(), seed=0)
    with pytest.raises(IndexError):
        net.set_neuron_status(1, 0, "killed")
    with pytest.raises(IndexError):
        net.get_neuron_status(0, 16)
    with pytest.raises(ValueError):
        net.set_neuron_status(0, 0, "asleep")
    net.set_neuron_status(0, 2, "frozen")
    assert net.get_neuron_statuses() == {(0, 2): NeuronStatus.FROZEN}


def test_predict_is_deterministic():
    net = init_network(_config(), seed=11)
    x = np.random.default_rng(2).random(784)
    first = net.predict(x)
    second = net.predict(x)
    assert first.label == second.label
    assert np.array_equal(first.probabilities, second.probabilities)


def test_same_seed_builds_identical_networks():
    a = init_network(_config(), seed=5).get_params()
    b = init_network(_config(), seed=5).get_params()
    for pa, pb in zip(a, b):
        assert np.array_equal(pa.weights, pb.weights)


def test_training_lowers_loss_on_separable_data():
    X, y = _block_dataset()
    net = init_network(_config(lr=0.1), seed=0)
    losses = [net.train_batch(X, y).loss for _ in range(50)]
    assert losses[-1] < losses[0]
    assert net.get_epoch() == 50
    assert net.get_loss_history() == losses


def test_camel_case_config_and_single_layer_snapshot():
    net = NeuralNetwork(784, {"learningRate": 0.01, "layers": [{"neurons": 16, "activation": "relu"}]})
    data = generate_training_data(samples_per_digit=1, seed=0)
    snapshot = net.train_batch(data.inputs[:5], data.labels[:5])
    assert snapshot.output_probabilities.shape == (10,)
    assert len(snapshot.layers) == 1
    assert math.isfinite(snapshot.loss)
    assert snapshot.predictions.sum() == 1
    assert 0.0 <= snapshot.accuracy <= 1.0


def test_snapshots_do_not_alias_live_parameters():
    X, y = _block_dataset()
    net = init_network(_config(), seed=0)
    snapshot = net.train_batch(X, y)
    held = snapshot.layers[0].weights.copy()
    net.train_batch(X, y)
    assert np.array_equal(snapshot.layers[0].weights, held)
    with pytest.raises(ValueError):
        snapshot.layers[0].weights[0, 0] = 1.0


@pytest.mark.parametrize(
    "config",
    [
        {"learning_rate": 0.0, "layers": [{"neurons": 4}]},
        {"learning_rate": -1.0, "layers": [{"neurons": 4}]},
        {"learning_rate": float("nan"), "layers": [{"neurons": 4}]},
        {"learning_rate": 0.1, "layers": []},
        {"learning_rate": 0.1, "layers": [{"neurons": 4}] * 6},
        {"learning_rate": 0.1, "layers": [{"neurons": 0}]},
        {"learning_rate": 0.1, "layers": [{"neurons": 4, "activation": "gelu"}]},
    ],
)
def test_invalid_configs_fail_fast(config):
    with pytest.raises(ConfigurationError):
        init_network(config)


def test_lr_alias_is_deprecated():
    with pytest.warns(DeprecationWarning):
        cfg = TrainingConfig.from_mapping({"lr": 0.2, "layers": [{"neurons": 4}]})
    assert cfg.learning_rate == 0.2


def test_malformed_batches_raise_value_error():
    net = init_network(_config(), seed=0)
    with pytest.raises(ValueError):
        net.train_batch(np.zeros((2, 10)), [0, 1])
    with pytest.raises(ValueError):
        net.train_batch(np.zeros((2, 784)), [0])
    with pytest.raises(ValueError):
        net.train_batch(np.zeros((1, 784)), [10])
    with pytest.raises(ValueError):
        net.train_batch(np.zeros((0, 784)), [])


def test_divergence_warns_by_default():
    net = init_network(_config(), seed=0)
    x = np.full((1, 784), np.nan)
    with pytest.warns(DivergenceWarning):
        snapshot = net.train_batch(x, [1])
    assert snapshot.diverged
    assert math.isnan(snapshot.loss)


def test_divergence_can_raise_after_recording_epoch():
    net = init_network(_config(), seed=0, divergence="raise")
    with pytest.raises(DivergenceError):
        net.train_batch(np.full((1, 784), np.nan), [1])
    assert net.get_epoch() == 1


def test_input_gradient_matches_finite_differences():
    net = init_network(_config(layers=((6, "tanh"), (5, "sigmoid"))), input_size=784, seed=4)
    rng = np.random.default_rng(0)
    x = rng.random(784)
    target = 7
    grad = net.compute_input_gradient(x, target)
    eps = 1e-6
    for idx in rng.choice(784, size=5, replace=False):
        up, down = x.copy(), x.copy()
        up[idx] += eps
        down[idx] -= eps
        numeric = (np.log(net.forward(up)[target]) - np.log(net.forward(down)[target])) / (2 * eps)
        assert grad[idx] == pytest.approx(numeric, rel=1e-4, abs=1e-8)


def test_trace_gradients_reports_every_layer():
    net = init_network(_config(layers=((8, "relu"), (4, "tanh"))), seed=0)
    traces = net.trace_gradients(np.random.default_rng(0).random(784), 3)
    assert [t.layer_idx for t in traces] == [0, 1, 2]
    assert traces[0].weight_grad.shape == (8, 784)
    assert traces[-1].delta.shape == (10,)
    assert net.get_epoch() == 0


def test_predict_proba_matches_forward():
    net = init_network(_config(), seed=1)
    X, _ = _block_dataset(n_per_class=2)
    batch = net.predict_proba(X)
    for row, x in zip(batch, X):
        assert np.allclose(row, net.forward(x))


def test_weighted_input_gradient_is_linear_in_class_weights():
    net = init_network(_config(layers=((10, "tanh"), (6, "tanh"))), seed=2)
    rng = np.random.default_rng(5)
    x = rng.random(784)
    weights = rng.normal(size=10)
    combined = net.compute_weighted_input_gradient(x, weights)
    per_class = sum(w * net.compute_input_gradient(x, c) for c, w in enumerate(weights))
    assert np.allclose(combined, per_class, atol=1e-10)

    net.set_neuron_status(1, 3, NeuronStatus.KILLED)
    masked = net.compute_weighted_input_gradient(x, weights)
    masked_per_class = sum(w * net.compute_input_gradient(x, c) for c, w in enumerate(weights))
    assert np.allclose(masked, masked_per_class, atol=1e-10)
    assert not np.allclose(masked, combined)


def test_input_gradient_respects_masks():
    net = init_network(_config(layers=((5, "sigmoid"),)), seed=6)
    x = np.random.default_rng(1).random(784)
    free = net.compute_input_gradient(x, 4)

    net.set_neuron_status(0, 1, NeuronStatus.FROZEN)
    assert np.allclose(net.compute_input_gradient(x, 4), free)

    for neuron in range(5):
        net.set_neuron_status(0, neuron, NeuronStatus.KILLED)
    assert not np.any(net.compute_input_gradient(x, 4))
