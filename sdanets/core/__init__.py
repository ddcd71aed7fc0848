"""Core numerical primitives for sdanets."""

from . import activations, autoencoder, costs, gradients, layers, parallel, stack, types
from .errors import (
    ConfigurationError,
    FrozenStackError,
    ShapeMismatchError,
    StackNotFinalizedError,
)

__all__ = [
    "activations",
    "autoencoder",
    "costs",
    "gradients",
    "layers",
    "parallel",
    "stack",
    "types",
    "ConfigurationError",
    "FrozenStackError",
    "ShapeMismatchError",
    "StackNotFinalizedError",
]
