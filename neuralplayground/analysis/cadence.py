"""Sampling policy for analyses too expensive to run on every epoch."""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from ..core.errors import ConfigurationError

T = TypeVar("T")


class Cadence:
    """Fires on epoch 1 and then on every multiple of ``every``."""

    def __init__(self, every: int = 1) -> None:
        if isinstance(every, bool) or not isinstance(every, int) or every < 1:
            raise ConfigurationError(f"cadence must be a positive int, got {every!r}")
        self.every = every

    def due(self, epoch: int) -> bool:
        return epoch == 1 or epoch % self.every == 0

    def __repr__(self) -> str:
        return f"Cadence(every={self.every})"


class PeriodicAnalysis(Generic[T]):
    """Wrap ``fn`` so it only recomputes when its cadence is due.

    Between runs :meth:`maybe_run` hands back the cached ``last`` result.
    """

    def __init__(self, fn: Callable[..., T], every: int | Cadence = 1, name: str | None = None) -> None:
        self.fn = fn
        self.cadence = every if isinstance(every, Cadence) else Cadence(every)
        self.name = name or getattr(fn, "__name__", "analysis")
        self.last: T | None = None
        self.last_epoch: int | None = None
        self.runs = 0

    def maybe_run(self, epoch: int, *args: Any, **kwargs: Any) -> T | None:
        if self.cadence.due(epoch):
            self.last = self.fn(*args, **kwargs)
            self.last_epoch = epoch
            self.runs += 1
        return self.last

    def reset(self) -> None:
        self.last = None
        self.last_epoch = None
        self.runs = 0


__all__ = ["Cadence", "PeriodicAnalysis"]
