"""Per-sample cost functions.

``target`` is the true vector and ``output`` the network's estimate. Log terms
are offset by ``EPSILON`` so saturated outputs still give finite costs.
"""

from __future__ import annotations

import numpy as np

from .types import Array

EPSILON = 1e-10


def binary_cross_entropy(target: Array, output: Array) -> float:
    """Summed Bernoulli cross-entropy, used for autoencoder reconstructions."""

    target = np.asarray(target, dtype=np.float64)
    output = np.asarray(output, dtype=np.float64)
    return float(
        -np.sum(
            target * np.log(output + EPSILON)
            + (1.0 - target) * np.log(1.0 - output + EPSILON)
        )
    )


def multi_class_cross_entropy(target: Array, output: Array) -> float:
    """Categorical cross-entropy of a probability vector against ``target``."""

    target = np.asarray(target, dtype=np.float64)
    output = np.asarray(output, dtype=np.float64)
    return float(-np.sum(target * np.log(output + EPSILON)))


def least_squares(target: Array, output: Array) -> float:
    diff = np.asarray(output, dtype=np.float64) - np.asarray(target, dtype=np.float64)
    return float(np.dot(diff, diff) / 2.0)


def one_hot(label: int, classes: int) -> Array:
    """Return the indicator vector of ``label`` over ``classes`` entries."""

    if not 0 <= label < classes:
        raise ValueError(f"Label {label} outside [0, {classes})")
    out = np.zeros(classes, dtype=np.float64)
    out[label] = 1.0
    return out


__all__ = [
    "EPSILON",
    "binary_cross_entropy",
    "least_squares",
    "multi_class_cross_entropy",
    "one_hot",
]
