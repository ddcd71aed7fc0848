"""Learning-set registry and loaders."""

# Built-in learning sets register themselves on import.
from . import idx as _idx  # noqa: F401
from . import patterns as _patterns  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .idx import IdxFormatError
from .registry import (
    LearningSet,
    available_learning_sets,
    get_learning_set,
    register_learning_set,
    samples_from_arrays,
)

__all__ = [
    "IdxFormatError",
    "LearningSet",
    "available_learning_sets",
    "get_learning_set",
    "register_learning_set",
    "samples_from_arrays",
]
