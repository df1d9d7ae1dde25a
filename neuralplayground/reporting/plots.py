"""Headless-safe training-curve plots."""

from __future__ import annotations

import math
from pathlib import Path
from typing import List, Mapping, Tuple


class PlotAdapter:
    """Collect per-epoch loss and accuracy; write PNG curves on :meth:`close`."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        if not self.enable_plots:
            return
        loss = float(metrics.get("loss", math.nan))  # type: ignore[arg-type]
        accuracy = float(metrics.get("accuracy", math.nan))  # type: ignore[arg-type]
        self._history.append((int(epoch), loss, accuracy))

    def close(self) -> List[Path]:
        if not self.enable_plots or not self._history:
            return []
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, losses, accuracies = zip(*self._history)
        written: List[Path] = []
        for name, values, label in (
            ("loss.png", losses, "Cross-entropy"),
            ("accuracy.png", accuracies, "Accuracy"),
        ):
            fig, ax = plt.subplots()
            ax.plot(epochs, values)
            ax.set_xlabel("Epoch")
            ax.set_ylabel(label)
            ax.set_title(f"Training {label.lower()}")
            path = self.run_dir / name
            fig.savefig(path)
            plt.close(fig)
            written.append(path)
        return written

    __call__ = on_epoch


__all__ = ["PlotAdapter"]
