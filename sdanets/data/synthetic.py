"""Pure in-memory synthetic learning set."""

from __future__ import annotations

import numpy as np
from sklearn.datasets import make_blobs
from sklearn.preprocessing import MinMaxScaler

from .registry import LearningSet, register_learning_set, samples_from_arrays
from .utils import deterministic_split


def _make_blobs(
    n_samples: int, rows: int, columns: int, classes: int, spread: float, seed: int
) -> tuple[np.ndarray, np.ndarray]:
    features, labels = make_blobs(
        n_samples=n_samples,
        n_features=rows * columns,
        centers=classes,
        cluster_std=spread,
        random_state=seed,
    )
    # Autoencoder reconstructions are sigmoid outputs, so inputs live in [0, 1]
    scaled = MinMaxScaler().fit_transform(features)
    return scaled.astype(np.float64), labels.astype(np.int64)


@register_learning_set("blobs")
def load_blobs(
    *,
    n_samples: int = 300,
    rows: int = 4,
    columns: int = 4,
    classes: int = 3,
    spread: float = 1.0,
    seed: int = 0,
    val_split: float = 0.15,
    test_split: float = 0.15,
    **_: object,
) -> LearningSet:
    """Gaussian clusters, one per class, min-max scaled to ``[0, 1]``."""

    x, y = _make_blobs(n_samples, rows, columns, classes, spread, seed)
    splits = deterministic_split(
        x.shape[0], val_split=val_split, test_split=test_split, seed=seed
    )
    return LearningSet(
        name="blobs",
        training=samples_from_arrays(x[splits.train], y[splits.train]),
        validation=samples_from_arrays(x[splits.val], y[splits.val]),
        test=samples_from_arrays(x[splits.test], y[splits.test]),
        rows=rows,
        columns=columns,
        class_count=classes,
        provenance={
            "type": "synthetic",
            "n_samples": n_samples,
            "spread": spread,
            "seed": seed,
            "val_split": val_split,
            "test_split": test_split,
        },
    )


__all__ = ["load_blobs"]
