"""sdanets public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.autoencoder import DenoisingAutoEncoder
from .core.stack import StackedDenoisingAutoEncoder
from .core.types import Sample, make_uniform_source
from .data import get_learning_set
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "DenoisingAutoEncoder",
    "Sample",
    "StackedDenoisingAutoEncoder",
    "Trainer",
    "activations",
    "get_learning_set",
    "load_preset",
    "make_uniform_source",
    "presets",
    "run_pipeline",
    "types",
]
