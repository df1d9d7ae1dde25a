"""Tick-driven training loop around one :class:`NeuralNetwork`."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Sequence

from ..analysis.cadence import PeriodicAnalysis
from ..core.network import NeuralNetwork
from ..core.types import Batch, TrainingSnapshot
from ..data.utils import batch_iterator
from ..history.recorders import EpochRecorder, WeightEvolutionRecorder
from ..reporting.metrics import numeric_metrics


class TrainingSession:
    """Drive ``train_batch`` one tick at a time.

    Each :meth:`step` trains on the whole dataset (or one sampled minibatch
    when ``batch_size`` is set), records history, runs the analyses whose
    cadence is due and emits ``on_epoch(epoch, metrics)`` to every callback.
    Callbacks that also define ``on_analysis(epoch, name, result)`` receive
    each fresh analysis result.
    """

    def __init__(
        self,
        network: NeuralNetwork,
        dataset: Batch,
        *,
        callbacks: Sequence[object] | None = None,
        epoch_recorder: EpochRecorder | None = None,
        weight_recorder: WeightEvolutionRecorder | None = None,
        analyses: Mapping[str, PeriodicAnalysis] | None = None,
        batch_size: int | None = None,
        seed: int = 0,
        stop_on_divergence: bool = True,
    ) -> None:
        if len(dataset) == 0:
            raise ValueError("training dataset is empty")
        self.network = network
        self.dataset = dataset
        self.callbacks = list(callbacks or [])
        self.epoch_recorder = epoch_recorder
        self.weight_recorder = weight_recorder
        self.analyses: Dict[str, PeriodicAnalysis] = dict(analyses or {})
        self.stop_on_divergence = stop_on_divergence
        self._batches: Iterator[Batch] | None = None
        if batch_size is not None:
            self._batches = batch_iterator(dataset, batch_size=batch_size, seed=seed)
        self.latest: Dict[str, Any] = {}
        self.last_snapshot: TrainingSnapshot | None = None
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Schedule no further ticks; the tick in progress still completes."""

        self._stopped = True

    def _next_batch(self) -> Batch:
        return next(self._batches) if self._batches is not None else self.dataset

    def step(self) -> TrainingSnapshot:
        batch = self._next_batch()
        snapshot = self.network.train_batch(batch.inputs, batch.labels)
        self.last_snapshot = snapshot
        if self.epoch_recorder is not None:
            self.epoch_recorder.record(snapshot)
        if self.weight_recorder is not None:
            self.weight_recorder.record(snapshot)

        metrics: Dict[str, Any] = {"loss": snapshot.loss, "accuracy": snapshot.accuracy}
        if not snapshot.diverged:
            for name, analysis in self.analyses.items():
                previous = analysis.runs
                result = analysis.maybe_run(snapshot.epoch, self.network)
                self.latest[name] = result
                if analysis.runs != previous:
                    self._emit_analysis(snapshot.epoch, name, result)
                metrics.update({f"{name}_{k}": v for k, v in _scalars(result).items()})
        self._emit_epoch(snapshot.epoch, metrics)

        if snapshot.diverged and self.stop_on_divergence:
            self.stop()
        return snapshot

    def run(self, epochs: int) -> List[TrainingSnapshot]:
        """Tick up to ``epochs`` times, ending early once :meth:`stop` is called."""

        if epochs < 0:
            raise ValueError(f"epochs must be >= 0, got {epochs}")
        self._stopped = False
        snapshots: List[TrainingSnapshot] = []
        for _ in range(epochs):
            snapshots.append(self.step())
            if self._stopped:
                break
        return snapshots

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, Any]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    def _emit_analysis(self, epoch: int, name: str, result: Any) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_analysis"):
                callback.on_analysis(epoch, name, result)  # type: ignore[attr-defined]


def _scalars(result: Any) -> Dict[str, float]:
    """Numeric fields of an analysis result, for the metric stream."""

    if isinstance(result, bool):
        return {}
    if isinstance(result, (int, float)):
        return {"value": float(result)}
    if isinstance(result, Mapping):
        return numeric_metrics(result)
    fields = getattr(result, "__dataclass_fields__", None)
    if fields:
        return numeric_metrics({name: getattr(result, name) for name in fields})
    return {}


__all__ = ["TrainingSession"]
