"""Typed failures raised by the network engine."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a :class:`TrainingConfig` cannot describe a valid network."""


class DivergenceError(FloatingPointError):
    """Raised by ``divergence="raise"`` networks when the loss is not finite."""


class DivergenceWarning(RuntimeWarning):
    """Emitted when a training step produces a non-finite loss."""


__all__ = ["ConfigurationError", "DivergenceError", "DivergenceWarning"]
