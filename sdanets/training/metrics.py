"""Classification metrics over a split of samples."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Sequence

import numpy as np

from ..core.costs import one_hot
from ..core.stack import StackedDenoisingAutoEncoder
from ..core.types import Sample
from .losses import REGISTRY


def _macro_f1(predicted: np.ndarray, labels: np.ndarray, classes: int) -> float:
    scores = []
    for cls in range(classes):
        tp = np.sum((predicted == cls) & (labels == cls))
        fp = np.sum((predicted == cls) & (labels != cls))
        fn = np.sum((predicted != cls) & (labels == cls))
        precision = tp / (tp + fp + 1e-9)
        recall = tp / (tp + fn + 1e-9)
        scores.append(2 * precision * recall / (precision + recall + 1e-9))
    return float(np.mean(scores))


def evaluate(
    network: StackedDenoisingAutoEncoder,
    samples: Sequence[Sample],
    *,
    names: Iterable[str] = ("error_rate",),
    loss: str = "ce",
) -> Mapping[str, float]:
    """Compute ``names`` over ``samples`` with one forward pass per sample.

    Known metrics: ``error_rate``, ``accuracy``, ``macro_f1`` and ``loss``
    (mean of the registered cost ``loss``).
    """

    if len(samples) == 0:
        raise ValueError("Cannot evaluate an empty split")
    classes = network.output_layer.n_out
    cost = REGISTRY.get(loss)
    outputs = np.stack([network.output(sample.image) for sample in samples])
    labels = np.array([sample.label for sample in samples])
    predicted = np.argmax(outputs, axis=1)

    results: Dict[str, float] = {}
    for name in names:
        key = name.lower()
        if key == "error_rate":
            results[key] = float(np.mean(predicted != labels))
        elif key == "accuracy":
            results[key] = float(np.mean(predicted == labels))
        elif key == "macro_f1":
            results[key] = _macro_f1(predicted, labels, classes)
        elif key == "loss":
            results[key] = float(
                np.mean([cost(one_hot(int(y), classes), out) for y, out in zip(labels, outputs)])
            )
        else:
            raise KeyError(f"Unknown metric: {name}")
    return results


__all__ = ["evaluate"]
