import numpy as np
import pytest

from neuralplayground.analysis import PeriodicAnalysis, compute_confusion_matrix
from neuralplayground.core.errors import DivergenceWarning
from neuralplayground.core.network import init_network
from neuralplayground.core.types import Batch
from neuralplayground.data.digits import generate_training_data
from neuralplayground.history import EpochRecorder, WeightEvolutionRecorder
from neuralplayground.training import TrainingSession


class _Capture:
    def __init__(self):
        self.epochs = []
        self.analyses = []

    def on_epoch(self, epoch, metrics):
        self.epochs.append((epoch, dict(metrics)))

    def on_analysis(self, epoch, name, result):
        self.analyses.append((epoch, name))


def _network():
    return init_network({"learning_rate": 0.1, "layers": [{"neurons": 8, "activation": "relu"}]}, seed=0)


def test_session_emits_metrics_and_records_history():
    data = generate_training_data(samples_per_digit=2, seed=0)
    capture = _Capture()
    epochs = EpochRecorder(capacity=10)
    weights = WeightEvolutionRecorder(capacity=10)
    session = TrainingSession(
        _network(),
        data,
        callbacks=[capture],
        epoch_recorder=epochs,
        weight_recorder=weights,
        analyses={
            "eval": PeriodicAnalysis(
                lambda net: compute_confusion_matrix(net, data.inputs, data.labels), every=2
            )
        },
    )
    snapshots = session.run(4)
    assert [s.epoch for s in snapshots] == [1, 2, 3, 4]
    assert [e for e, _ in capture.epochs] == [1, 2, 3, 4]
    assert {"loss", "accuracy", "eval_accuracy"} <= set(capture.epochs[0][1])
    assert capture.analyses == [(1, "eval"), (2, "eval"), (4, "eval")]
    assert len(epochs) == 4 and len(weights) == 4
    assert session.latest["eval"].total == 20


def test_stop_ends_run_after_current_tick():
    data = generate_training_data(samples_per_digit=1, seed=0)
    session = TrainingSession(_network(), data)

    def halt(epoch, metrics):
        if epoch == 2:
            session.stop()

    session.callbacks.append(halt)
    snapshots = session.run(10)
    assert len(snapshots) == 2
    assert session.network.epoch == 2
    assert session.stopped


def test_minibatch_session_samples_batches():
    data = generate_training_data(samples_per_digit=3, seed=0)
    session = TrainingSession(_network(), data, batch_size=5, seed=2)
    snapshot = session.step()
    assert snapshot.epoch == 1


def test_diverged_session_stops_and_skips_analyses():
    bad = Batch(inputs=np.full((2, 784), np.nan), labels=np.array([0, 1]))
    calls = []
    session = TrainingSession(
        _network(), bad, analyses={"counter": PeriodicAnalysis(lambda net: calls.append(1), every=1)}
    )
    with pytest.warns(DivergenceWarning):
        snapshots = session.run(5)
    assert len(snapshots) == 1
    assert calls == []


def test_empty_dataset_is_rejected():
    empty = Batch(inputs=np.zeros((0, 784)), labels=np.zeros(0, dtype=int))
    with pytest.raises(ValueError):
        TrainingSession(_network(), empty)
