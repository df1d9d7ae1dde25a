import numpy as np
import pytest

from neuralplayground.analysis import (
    Cadence,
    LayerGradientStats,
    PeriodicAnalysis,
    classify_health,
    compute_confusion_matrix,
    compute_decision_boundary,
    compute_misfit_summary,
    confusion_from_predictions,
    exemplar_pair_axis,
    find_misfits,
    measure_gradient_flow,
    run_ablation_study,
)
from neuralplayground.core.errors import ConfigurationError
from neuralplayground.core.losses import DEGENERATE_LOSS, PROB_FLOOR, capped_losses
from neuralplayground.core.network import init_network
from neuralplayground.core.types import NeuronStatus


def _dataset(seed=0):
    rng = np.random.default_rng(seed)
    X = rng.random((30, 784)) * 0.05
    y = np.repeat(np.arange(3), 10)
    for i, c in enumerate(y):
        X[i, c * 150 : (c + 1) * 150] = 1.0
    return X, y


def _network(layers=((12, "relu"),), seed=0):
    return init_network(
        {"learning_rate": 0.2, "layers": [{"neurons": n, "activation": a} for n, a in layers]},
        seed=seed,
    )


def test_confusion_rows_sum_to_class_counts():
    X, y = _dataset()
    net = _network()
    for _ in range(5):
        net.train_batch(X, y)
    data = compute_confusion_matrix(net, X, y)
    assert np.array_equal(data.matrix.sum(axis=1), data.class_counts)
    assert data.class_counts[:3].tolist() == [10, 10, 10]
    assert data.total == 30
    assert np.trace(data.matrix) / data.total == pytest.approx(data.accuracy)


def test_confusion_metrics_for_unseen_classes_are_zero():
    data = confusion_from_predictions([0, 0, 1, 2], [0, 1, 1, 2])
    assert data.precision[5] == 0.0 and data.recall[5] == 0.0 and data.f1[5] == 0.0
    assert data.precision[1] == pytest.approx(0.5)
    assert data.recall[0] == pytest.approx(0.5)
    assert data.accuracy == pytest.approx(0.75)


def test_confusion_of_empty_sample_set():
    data = compute_confusion_matrix(_network(), np.zeros((0, 784)), [])
    assert data.total == 0
    assert data.accuracy == 0.0
    assert not data.matrix.any()


def test_misfits_are_sorted_by_descending_loss():
    X, y = _dataset()
    net = _network()
    net.train_batch(X, y)
    misfits = find_misfits(net, X, y, count=8)
    assert len(misfits) == 8
    losses = [m.loss for m in misfits]
    assert losses == sorted(losses, reverse=True)
    for m in misfits:
        assert m.is_wrong == (m.predicted_label != m.true_label)
        assert m.true_confidence == pytest.approx(m.probabilities[m.true_label])


def test_misfits_of_empty_set_and_summary():
    net = _network()
    assert find_misfits(net, np.zeros((0, 784)), []) == []
    X, y = _dataset()
    summary = compute_misfit_summary(net, X, y)
    assert summary.total_samples == 30
    assert sum(summary.class_errors) == summary.total_wrong
    assert summary.accuracy == pytest.approx(1 - summary.total_wrong / 30)
    if summary.total_wrong:
        true_label, predicted = summary.most_confused_pair
        assert true_label != predicted


def test_non_finite_losses_take_the_degenerate_cap():
    probs = np.full((3, 10), 0.1)
    probs[1] = np.nan
    probs[2, 0] = 1e-12
    losses = capped_losses(probs, np.array([0, 0, 0]))
    assert losses[1] == DEGENERATE_LOSS
    assert losses[2] == pytest.approx(-np.log(PROB_FLOOR))
    assert losses[2] > losses[1] > losses[0]


def test_decision_boundary_grid_shape_and_endpoints():
    X, y = _dataset()
    net = _network()
    for _ in range(10):
        net.train_batch(X, y)
    a, b = X[0], X[15]
    result = compute_decision_boundary(net, a, b, 0, 1, resolution=6, axis=np.zeros(784))
    assert result.labels.shape == (6, 6)
    expected_a = net.predict_proba(np.clip(a, 0, 1))[0]
    assert result.conf_a[0, 0] == pytest.approx(expected_a[0])
    assert np.allclose(result.conf_a, result.conf_a[0])
    cell = result.cell(2, 3)
    assert cell.is_boundary == (abs(cell.conf_a - cell.conf_b) < 0.15)
    assert result.boundary_mask.shape == (6, 6)


def test_decision_boundary_default_axis_is_seeded():
    X, _ = _dataset()
    net = _network()
    first = compute_decision_boundary(net, X[0], X[12], 0, 1, resolution=4, rng=np.random.default_rng(3))
    second = compute_decision_boundary(net, X[0], X[12], 0, 1, resolution=4, rng=np.random.default_rng(3))
    assert np.array_equal(first.conf_b, second.conf_b)


def test_decision_boundary_rejects_bad_arguments():
    X, _ = _dataset()
    net = _network()
    with pytest.raises(ValueError):
        compute_decision_boundary(net, X[0], X[1], 0, 1, resolution=1)
    with pytest.raises(ValueError):
        compute_decision_boundary(net, X[0], X[1], 0, 11)
    axis = exemplar_pair_axis(X[2], X[20])
    assert np.allclose(axis, (X[2] - X[20]) / 2)


def test_gradient_flow_covers_every_layer():
    X, y = _dataset()
    net = _network(layers=((12, "relu"), (6, "tanh")))
    snapshot = measure_gradient_flow(net, X[0], int(y[0]))
    assert [s.layer_idx for s in snapshot.layers] == [0, 1, 2]
    assert snapshot.layers[0].count == 12 * 784
    assert snapshot.health in {"healthy", "vanishing", "exploding"}
    assert snapshot.epoch == 0


def test_gradient_flow_skips_masked_neurons():
    X, y = _dataset()
    net = _network(layers=((4, "relu"),))
    for n in range(4):
        net.set_neuron_status(0, n, "killed")
    snapshot = measure_gradient_flow(net, X[0], int(y[0]))
    assert snapshot.layers[0].count == 0
    assert snapshot.layers[0].dead_fraction == 1.0


def test_health_classification_thresholds():
    def stats(*pairs):
        return [LayerGradientStats(i, mean, peak, 0.0, 1) for i, (mean, peak) in enumerate(pairs)]

    assert classify_health(stats((0.01, 0.5), (0.02, 0.4))) == "healthy"
    assert classify_health(stats((0.01, 11.0), (0.02, 0.4))) == "exploding"
    assert classify_health(stats((1e-7, 1e-6), (0.02, 0.4))) == "vanishing"
    assert classify_health(stats((1e-5, 1e-4), (0.1, 0.4))) == "vanishing"
    dead = [LayerGradientStats(0, 0.01, 0.1, 0.9, 1)]
    assert classify_health(dead) == "vanishing"


def test_ablation_restores_caller_masks():
    X, y = _dataset()
    net = _network(layers=((6, "relu"), (4, "sigmoid")))
    for _ in range(10):
        net.train_batch(X, y)
    net.set_neuron_status(1, 2, "frozen")
    study = run_ablation_study(net, X, y)
    assert study.total_neurons == 10
    assert [len(layer) for layer in study.layers] == [6, 4]
    assert net.get_neuron_statuses() == {(1, 2): NeuronStatus.FROZEN}
    for layer in study.layers:
        for r in layer:
            assert 0.0 <= r.importance <= 1.0
            assert r.accuracy_drop == pytest.approx(study.baseline_accuracy - r.accuracy_without)
    assert study.most_critical.accuracy_drop >= study.most_redundant.accuracy_drop


def test_cadence_schedule():
    cadence = Cadence(5)
    assert [e for e in range(1, 16) if cadence.due(e)] == [1, 5, 10, 15]
    with pytest.raises(ConfigurationError):
        Cadence(0)


def test_periodic_analysis_caches_between_runs():
    calls = []

    def double(value):
        calls.append(value)
        return value * 2

    job = PeriodicAnalysis(double, every=3)
    results = [job.maybe_run(epoch, epoch) for epoch in range(1, 8)]
    assert calls == [1, 3, 6]
    assert results == [2, 2, 6, 6, 6, 12, 12]
    assert job.last_epoch == 6
