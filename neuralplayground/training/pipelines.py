"""Preset-driven training runs that write metrics, plots and a summary."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

from ..analysis.cadence import PeriodicAnalysis
from ..analysis.confusion import compute_confusion_matrix
from ..analysis.gradient_flow import measure_gradient_flow
from ..analysis.misfits import compute_misfit_summary
from ..core.errors import ConfigurationError
from ..core.network import NeuralNetwork
from ..core.types import Batch, RunResult, TrainingConfig
from ..data.digits import generate_training_data
from ..data.utils import deterministic_split, seed_everything, subset
from ..history.recorders import EpochRecorder, GradientFlowHistory, WeightEvolutionRecorder
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .session import TrainingSession

_PRESETS: Dict[str, Mapping[str, Any]] = {
    "default": {
        "model": {
            "learning_rate": 0.01,
            "layers": [
                {"neurons": 64, "activation": "relu"},
                {"neurons": 32, "activation": "relu"},
            ],
        },
        "data": {"samples_per_digit": 20, "seed": 0, "eval_split": 0.2},
        "train": {
            "epochs": 30,
            "seed": 0,
            "analysis_every": 5,
            "run_dir": "runs/default",
            "enable_plots": False,
        },
    },
    "tiny": {
        "model": {"learning_rate": 0.5, "layers": [{"neurons": 16, "activation": "relu"}]},
        "data": {"samples_per_digit": 4, "seed": 0, "eval_split": 0.2},
        "train": {
            "epochs": 5,
            "seed": 7,
            "analysis_every": 2,
            "run_dir": "runs/tiny",
            "enable_plots": False,
        },
    },
    "deep-tanh": {
        "model": {
            "learning_rate": 0.05,
            "layers": [
                {"neurons": 64, "activation": "tanh"},
                {"neurons": 32, "activation": "tanh"},
                {"neurons": 16, "activation": "tanh"},
            ],
        },
        "data": {"samples_per_digit": 20, "seed": 0, "eval_split": 0.2},
        "train": {
            "epochs": 40,
            "seed": 1,
            "batch_size": 64,
            "analysis_every": 5,
            "run_dir": "runs/deep-tanh",
            "enable_plots": False,
        },
    },
    "race-relu-vs-sigmoid": {
        "model": {"learning_rate": 0.01, "layers": [{"neurons": 64, "activation": "relu"}]},
        "data": {"samples_per_digit": 20, "seed": 0, "eval_split": 0.2},
        "train": {
            "epochs": 30,
            "seed": 0,
            "analysis_every": 5,
            "run_dir": "runs/race-relu-vs-sigmoid",
            "enable_plots": False,
        },
        "sweep": {
            "variants": {
                "relu": {"layers": [{"neurons": 64, "activation": "relu"}]},
                "sigmoid": {"layers": [{"neurons": 64, "activation": "sigmoid"}]},
            },
        },
    },
}

_REQUIRED_SECTIONS = {"data", "model", "train"}
_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, Any]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, Any]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load preset files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, Any]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, Any]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = _REQUIRED_SECTIONS - set(data)
                if missing:
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, Any]]:
    combined: Dict[str, Mapping[str, Any]] = {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, Any]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return dict(file_overrides[name])
    try:
        return deepcopy(dict(_PRESETS[name]))
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def run_pipeline(config: Mapping[str, Any]) -> RunResult | List[RunResult]:
    """Train according to ``config``; a ``sweep`` section yields one result per run."""

    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    if "sweep" in config:
        return _run_sweep(config)
    return _train_single(config)


def _run_sweep(config: Mapping[str, Any]) -> List[RunResult]:
    """Cross product of model variants and seeds, each in its own run directory."""

    sweep_cfg = config["sweep"]
    variants: Mapping[str, Mapping[str, Any]] = sweep_cfg.get("variants") or {"base": {}}
    seeds: Sequence[int] = sweep_cfg.get("seeds") or [config["train"].get("seed", 0)]
    base_dir = Path(config["train"].get("run_dir", "runs/sweep"))
    results: List[RunResult] = []
    for label, overrides in variants.items():
        for seed in seeds:
            cfg = deepcopy(dict(config))
            cfg.pop("sweep", None)
            cfg["model"] = {**cfg["model"], **deepcopy(dict(overrides))}
            cfg["train"] = {
                **cfg["train"],
                "seed": int(seed),
                "label": label,
                "run_dir": str(base_dir / label / f"seed-{seed}"),
            }
            result = _train_single(cfg)
            results.append(
                RunResult(
                    epochs=result.epochs,
                    metrics_path=result.metrics_path,
                    summary_path=result.summary_path,
                    final_loss=result.final_loss,
                    final_accuracy=result.final_accuracy,
                    extras={**result.extras, "variant": label, "seed": int(seed)},
                )
            )
    return results


def _build_dataset(data_cfg: Mapping[str, Any]) -> tuple[Batch, Batch]:
    full = generate_training_data(
        samples_per_digit=int(data_cfg.get("samples_per_digit", 20)),
        seed=data_cfg.get("seed", 0),
    )
    if len(full) == 0:
        raise ConfigurationError("data.samples_per_digit must be positive")
    eval_split = float(data_cfg.get("eval_split", 0.0))
    if eval_split <= 0:
        return full, full
    split = deterministic_split(len(full), eval_split=eval_split, seed=int(data_cfg.get("seed", 0)))
    return subset(full, split.train), subset(full, split.eval)


def _train_single(config: Mapping[str, Any]) -> RunResult:
    model_cfg = dict(config["model"])
    data_cfg = dict(config["data"])
    train_cfg = dict(config["train"])

    training_config = TrainingConfig.from_mapping(model_cfg)
    seed = int(train_cfg.get("seed", 0))
    epochs = int(train_cfg.get("epochs", 1))
    if epochs < 0:
        raise ConfigurationError(f"epochs must be >= 0, got {epochs}")
    every = int(train_cfg.get("analysis_every", 5))
    batch_size = train_cfg.get("batch_size")
    seed_everything(seed)

    train_set, eval_set = _build_dataset(data_cfg)
    network = NeuralNetwork(
        config=training_config,
        seed=seed,
        divergence=str(train_cfg.get("divergence", "warn")),
    )

    run_dir = _resolve_run_dir(train_cfg)
    run_dir.mkdir(parents=True, exist_ok=True)
    _print_startup_summary(training_config, train_set, eval_set, epochs)

    label = str(train_cfg.get("label", "train"))
    jsonl = JsonlSink(run_dir / "metrics.jsonl", run=label, seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", run=label)
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    gradient_history = GradientFlowHistory(capacity=int(train_cfg.get("history_capacity", 100)))

    sample_input, sample_label = eval_set.inputs[0], int(eval_set.labels[0])
    analyses = {
        "eval": PeriodicAnalysis(
            partial(_evaluate, inputs=eval_set.inputs, labels=eval_set.labels), every
        ),
        "gradient_flow": PeriodicAnalysis(
            partial(_sample_gradients, input=sample_input, label=sample_label, history=gradient_history),
            every,
        ),
    }
    session = TrainingSession(
        network,
        train_set,
        callbacks=[jsonl, csv_sink, plots],
        epoch_recorder=EpochRecorder(capacity=int(train_cfg.get("history_capacity", 200))),
        weight_recorder=WeightEvolutionRecorder(capacity=int(train_cfg.get("history_capacity", 200))),
        analyses=analyses,
        batch_size=int(batch_size) if batch_size is not None else None,
        seed=seed,
    )
    session.run(epochs)
    plots.close()

    confusion = compute_confusion_matrix(network, eval_set.inputs, eval_set.labels)
    misfits = compute_misfit_summary(network, eval_set.inputs, eval_set.labels)
    flow = gradient_history.get_latest()
    analysis = {
        "eval_accuracy": confusion.accuracy,
        "eval_samples": confusion.total,
        "per_class_recall": [round(float(v), 6) for v in confusion.recall],
        "most_confused_pair": list(misfits.most_confused_pair) if misfits.most_confused_pair else None,
        "gradient_health": flow.health if flow is not None else None,
    }
    summary_path = write_summary(
        jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32)), analysis=analysis
    )
    (run_dir / "config.json").write_text(json.dumps(_safe_config(config), indent=2))

    last = session.last_snapshot
    return RunResult(
        epochs=network.epoch,
        metrics_path=str(jsonl.path),
        summary_path=summary_path,
        final_loss=float(last.loss) if last is not None else float("nan"),
        final_accuracy=float(last.accuracy) if last is not None else 0.0,
        extras={**analysis, "run_dir": str(run_dir), "stopped_early": session.stopped},
    )


def _evaluate(network: NeuralNetwork, *, inputs: np.ndarray, labels: np.ndarray):
    return compute_confusion_matrix(network, inputs, labels)


def _sample_gradients(
    network: NeuralNetwork, *, input: np.ndarray, label: int, history: GradientFlowHistory
):
    snapshot = measure_gradient_flow(network, input, label)
    history.push(snapshot)
    return snapshot


def _resolve_run_dir(train_cfg: Mapping[str, Any]) -> Path:
    if "run_dir" in train_cfg:
        return Path(train_cfg["run_dir"])
    return Path("runs") / time.strftime("%Y%m%d-%H%M%S")


def _safe_config(config: Mapping[str, Any]) -> Mapping[str, Any]:
    copied = json.loads(json.dumps(config))
    copied["model"] = TrainingConfig.from_mapping(copied["model"]).to_dict()
    return copied


def _print_startup_summary(
    config: TrainingConfig, train_set: Batch, eval_set: Batch, epochs: int
) -> None:
    widths = [784] + [layer.neurons for layer in config.layers] + [10]
    params = sum(widths[i] * widths[i + 1] + widths[i + 1] for i in range(len(widths) - 1))
    print("=== neuralplayground run ===")
    print(f"Layers        : {widths}")
    print(f"Activations   : {[layer.activation for layer in config.layers]}")
    print(f"Learning rate : {config.learning_rate}")
    print(f"Samples       : {len(train_set)} train / {len(eval_set)} eval")
    print(f"Epochs        : {epochs}")
    print(f"Parameters    : {params}")
    print("============================")


__all__ = ["load_preset", "presets", "run_pipeline"]
