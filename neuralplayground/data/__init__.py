"""Built-in digit data and input corruptions."""

from .digits import generate_digit, generate_exemplar, generate_training_data
from .noise import NOISE_KINDS, apply_noise, generate_noise_pattern
from .utils import batch_iterator, deterministic_split, seed_everything

__all__ = [
    "NOISE_KINDS",
    "apply_noise",
    "batch_iterator",
    "deterministic_split",
    "generate_digit",
    "generate_exemplar",
    "generate_noise_pattern",
    "generate_training_data",
    "seed_everything",
]
