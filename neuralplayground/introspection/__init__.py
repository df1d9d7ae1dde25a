"""Gradient and projection views of a trained network."""

from .chimera import CHIMERA_PRESETS, ChimeraPreset, ChimeraResult, dream_chimera
from .gradients import compute_saliency, dream, saliency
from .pca import PCAProjection, project_activations, project_to_2d

__all__ = [
    "CHIMERA_PRESETS",
    "ChimeraPreset",
    "ChimeraResult",
    "PCAProjection",
    "compute_saliency",
    "dream",
    "dream_chimera",
    "project_activations",
    "project_to_2d",
    "saliency",
]
