"""Deterministic run summaries built from a metrics JSONL file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

_NON_METRIC_KEYS = {"epoch", "seed"}


def compute_auc(points: Sequence[float]) -> float:
    """Trapezoidal area under ``points`` along an implicit epoch axis."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum((y[1:] + y[:-1]) * 0.5))


def read_records(metrics_jsonl: str | Path) -> List[Mapping[str, Any]]:
    path = Path(metrics_jsonl)
    if not path.exists():
        return []
    records = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line:
            records.append(json.loads(line))
    return records


def _series(records: Sequence[Mapping[str, Any]]) -> Dict[str, List[float]]:
    series: Dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _NON_METRIC_KEYS:
                continue
            if value is None or (isinstance(value, (int, float)) and not isinstance(value, bool)):
                series.setdefault(key, []).append(np.nan if value is None else float(value))
    return series


def summarise(records: Sequence[Mapping[str, Any]], tail: int = 32) -> Dict[str, Any]:
    """Min/max/mean/last and tail AUC per metric; diverged epochs are counted."""

    tail_window = min(tail, len(records))
    metrics: Dict[str, Dict[str, float | None]] = {}
    diverged = 0
    for name, values in _series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        finite = arr[np.isfinite(arr)]
        if name == "loss":
            diverged = int(arr.size - finite.size)
        if finite.size == 0:
            continue
        tail_arr = arr[-tail_window:] if tail_window else arr[:0]
        tail_arr = tail_arr[np.isfinite(tail_arr)]
        metrics[name] = {
            "min": float(finite.min()),
            "max": float(finite.max()),
            "mean": float(finite.mean()),
            "last": float(arr[-1]) if np.isfinite(arr[-1]) else None,
            "tail_auc": compute_auc(tail_arr.tolist()),
        }
    return {
        "version": 1,
        "records": len(records),
        "tail_window": tail_window,
        "diverged_epochs": diverged,
        "metrics": metrics,
    }


def write_summary(
    metrics_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    tail: int = 32,
    analysis: Mapping[str, Any] | None = None,
) -> str:
    """Write the summary of ``metrics_jsonl``, plus optional end-of-run ``analysis``."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = summarise(read_records(metrics_jsonl), tail)
    if analysis:
        summary["analysis"] = dict(analysis)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "read_records", "summarise", "write_summary"]
