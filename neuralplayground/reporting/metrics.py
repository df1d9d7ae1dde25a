"""Metric sinks receiving ``on_epoch(epoch, metrics)`` from a training session."""

from __future__ import annotations

import csv
import json
import math
import subprocess
from pathlib import Path
from typing import Dict, Mapping


def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"


def numeric_metrics(metrics: Mapping[str, object]) -> Dict[str, float]:
    """Keep the real-valued entries; booleans are dropped."""

    return {
        k: float(v)
        for k, v in metrics.items()
        if isinstance(v, (int, float)) and not isinstance(v, bool)
    }


def _json_value(value: float) -> float | None:
    # NaN/Inf are not valid JSON; a diverged epoch is written as null.
    return value if math.isfinite(value) else None


class JsonlSink:
    """Append-only JSONL writer, one record per epoch."""

    def __init__(
        self,
        path: str | Path,
        *,
        run: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.run = run
        self.seed = seed
        self.sha = sha or _git_sha()

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        record: Dict[str, object] = {
            "epoch": int(epoch),
            "run": self.run,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update({k: _json_value(v) for k, v in numeric_metrics(metrics).items()})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """CSV writer whose header is fixed by the first epoch's metric names."""

    def __init__(self, path: str | Path, *, run: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.run = run
        self._fieldnames: list[str] | None = None

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        row: Dict[str, object] = {"epoch": int(epoch), "run": self.run}
        row.update(numeric_metrics(metrics))
        if self._fieldnames is None:
            self._fieldnames = ["epoch", "run"] + sorted(k for k in row if k not in {"epoch", "run"})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


__all__ = ["CsvSink", "JsonlSink", "numeric_metrics"]
