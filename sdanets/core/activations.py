"""Activation utilities for sdanets.

Every transform takes a pre-activation vector and an optional output buffer of
the same length. With ``out`` supplied nothing is allocated and ``out`` may be
the input itself, which is how layers apply activations in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from .types import Array

Transform = Callable[..., Array]


def _buffer(x: Array, out: Optional[Array]) -> Array:
    if out is None:
        return np.array(x, dtype=np.float64)
    if out is not x:
        np.copyto(out, x)
    return out


def sigmoid(x: Array, out: Optional[Array] = None) -> Array:
    """Return the logistic sigmoid ``1 / (1 + exp(-x))``."""

    out = _buffer(x, out)
    np.negative(out, out=out)
    with np.errstate(over="ignore"):
        np.exp(out, out=out)
    out += 1.0
    np.reciprocal(out, out=out)
    return out


def sigmoid_derivative(y: Array, out: Optional[Array] = None) -> Array:
    """Return ``y * (1 - y)`` given an already computed sigmoid output."""

    if out is None:
        return y * (1.0 - y)
    return np.multiply(y, 1.0 - y, out=out)


def softmax(x: Array, out: Optional[Array] = None) -> Array:
    """Return the max-shifted normalised exponential of ``x``."""

    out = _buffer(x, out)
    out -= out.max()
    np.exp(out, out=out)
    out /= out.sum()
    return out


def identity(x: Array, out: Optional[Array] = None) -> Array:
    """Return ``x`` unchanged (copied into ``out`` when given)."""

    return _buffer(x, out)


@dataclass(frozen=True)
class Activation:
    """An activation transform and, when defined, its output-space derivative."""

    name: str
    forward: Transform
    derivative: Optional[Transform] = None
    # Softmax mixes every coordinate, so it cannot be applied per row slice.
    elementwise: bool = True


SIGMOID = Activation("sigmoid", sigmoid, sigmoid_derivative)
SOFTMAX = Activation("softmax", softmax, elementwise=False)
IDENTITY = Activation("identity", identity)

_REGISTRY: Dict[str, Activation] = {a.name: a for a in (SIGMOID, SOFTMAX, IDENTITY)}


def get_activation(name: str) -> Activation:
    try:
        return _REGISTRY[name]
    except KeyError as exc:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown activation {name!r}. Available: {available}") from exc


__all__ = [
    "Activation",
    "IDENTITY",
    "SIGMOID",
    "SOFTMAX",
    "get_activation",
    "identity",
    "sigmoid",
    "sigmoid_derivative",
    "softmax",
]
