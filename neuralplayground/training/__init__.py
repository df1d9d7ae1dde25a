"""Training session and preset pipelines."""

from .pipelines import load_preset, presets, run_pipeline
from .session import TrainingSession

__all__ = ["TrainingSession", "load_preset", "presets", "run_pipeline"]
