import numpy as np
import pytest

from neuralplayground.analysis.gradient_flow import GradientFlowSnapshot
from neuralplayground.core.network import NeuralNetwork
from neuralplayground.history import (
    EpochRecorder,
    GradientFlowHistory,
    WeightEvolutionRecorder,
    compute_weight_delta,
    params_to_layers,
    replay_forward,
)


def _small_network(activations=("relu",), seed=0):
    config = {
        "learning_rate": 0.3,
        "layers": [{"neurons": 5, "activation": a} for a in activations],
    }
    return NeuralNetwork(input_size=6, config=config, seed=seed)


def _snapshots(net, count):
    rng = np.random.default_rng(0)
    X = rng.random((8, 6))
    y = np.arange(8) % 3
    return [net.train_batch(X, y) for _ in range(count)]


def test_epoch_recorder_evicts_oldest_entries():
    recorder = EpochRecorder(capacity=3)
    for snapshot in _snapshots(_small_network(), 5):
        recorder.record(snapshot)
    assert len(recorder) == 3
    assert [s.epoch for s in recorder.get_timeline()] == [3, 4, 5]
    assert recorder.get_snapshot(0).epoch == 3
    assert recorder.get_snapshot(3) is None


def test_epoch_recorder_interval_and_clear():
    recorder = EpochRecorder(capacity=10, record_interval=2)
    kept = [recorder.record(s) for s in _snapshots(_small_network(), 5)]
    assert kept == [False, True, False, True, False]
    assert [s.epoch for s in recorder.get_timeline()] == [2, 4]
    recorder.clear()
    assert len(recorder) == 0


def test_recorded_params_include_output_layer_and_are_copies():
    net = _small_network()
    recorder = EpochRecorder()
    snapshot = _snapshots(net, 1)[0]
    recorder.record(snapshot)
    params = recorder.get_timeline()[0].params
    assert len(params) == 2
    assert params[-1].weights.shape == (10, 5)
    assert params[0].weights is not snapshot.layers[0].weights


def test_weight_frames_and_delta():
    recorder = WeightEvolutionRecorder(capacity=4)
    for snapshot in _snapshots(_small_network(), 3):
        recorder.record(snapshot)
    frames = recorder.get_frames()
    assert len(frames) == 3
    assert frames[0].weights.dtype == np.float32
    assert frames[0].weights.shape == (5 * 6,)
    assert frames[0].neuron_count == 5 and frames[0].input_size == 6
    assert compute_weight_delta(frames[0], frames[0], 1) == 0.0
    expected = np.mean(np.abs(frames[2].neuron(1).astype(np.float64) - frames[0].neuron(1)))
    assert compute_weight_delta(frames[0], frames[2], 1) == pytest.approx(expected)
    with pytest.raises(IndexError):
        frames[0].neuron(5)


def test_gradient_flow_history_ring():
    history = GradientFlowHistory(capacity=2)
    assert history.get_latest() is None
    for epoch in range(1, 4):
        history.push(GradientFlowSnapshot(layers=(), health="healthy", epoch=epoch))
    assert [s.epoch for s in history.get_all()] == [2, 3]
    assert history.get_latest().epoch == 3
    history.clear()
    assert history.get_all() == []


def test_replay_matches_live_network_at_recording_time():
    net = _small_network(activations=("relu", "tanh"))
    recorder = EpochRecorder()
    for snapshot in _snapshots(net, 3):
        recorder.record(snapshot)
    x = np.random.default_rng(5).random(6)
    replay = replay_forward(recorder.get_timeline()[-1], x, ["relu", "tanh"])
    assert np.allclose(replay.probabilities, net.predict_proba(x)[0])
    assert replay.label == int(np.argmax(net.predict_proba(x)[0]))


def test_replay_of_old_snapshot_leaves_network_untouched():
    net = _small_network()
    recorder = EpochRecorder()
    for snapshot in _snapshots(net, 2):
        recorder.record(snapshot)
    before = net.get_params()
    replay_forward(recorder.get_snapshot(0), np.ones(6))
    after = net.get_params()
    assert all(np.array_equal(a.weights, b.weights) for a, b in zip(before, after))


def test_replay_validates_activation_count():
    net = _small_network(activations=("relu", "relu"))
    recorder = EpochRecorder()
    recorder.record(_snapshots(net, 1)[0])
    with pytest.raises(ValueError):
        replay_forward(recorder.get_snapshot(0), np.ones(6), ["relu"])


def test_params_to_layers_zeroes_buffers():
    net = _small_network()
    recorder = EpochRecorder()
    recorder.record(_snapshots(net, 1)[0])
    layers = params_to_layers(recorder.get_snapshot(0))
    assert len(layers) == 2
    assert not layers[0].activations.any()
    assert layers[1].pre_activations.shape == (10,)
