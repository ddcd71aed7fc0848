"""Pattern-recognition learning set stored as delimited text."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from .registry import LearningSet, register_learning_set, samples_from_arrays
from .utils import resolve_data_dir

ROWS, COLUMNS, CLASSES = 7, 5, 10


def read_patterns(path: str | Path) -> tuple[np.ndarray, np.ndarray]:
    """Parse ``label f1 f2 ...`` lines separated by commas and/or spaces."""

    frame = pd.read_csv(path, sep=r"[,\s]+", engine="python", header=None)
    # Leading or trailing separators produce empty columns
    frame = frame.dropna(axis=1, how="all")
    if frame.isna().to_numpy().any():
        raise ValueError(f"{path}: rows have differing numbers of fields")
    labels = frame.pop(frame.columns[0]).to_numpy(dtype=np.int64)
    features = frame.to_numpy(dtype=np.float64)
    return features, labels


@register_learning_set("patterns")
def load_patterns(
    *,
    data_dir: str | Path | None = None,
    validation: int = 0,
    rows: int = ROWS,
    columns: int = COLUMNS,
    class_count: int = CLASSES,
    **_: object,
) -> LearningSet:
    """Load ``pattern2learn.dat`` (training) and ``pattern2recog.dat`` (test).

    The set has no validation partition unless ``validation`` moves that many
    samples off the end of the training file.
    """

    directory = resolve_data_dir(data_dir)
    train_x, train_y = read_patterns(directory / "pattern2learn.dat")
    test_x, test_y = read_patterns(directory / "pattern2recog.dat")
    cut = train_x.shape[0] - int(validation)
    if validation < 0 or cut <= 0:
        raise ValueError(f"validation={validation} leaves no training patterns")
    return LearningSet(
        name="patterns",
        training=samples_from_arrays(train_x[:cut], train_y[:cut]),
        validation=samples_from_arrays(train_x[cut:], train_y[cut:]),
        test=samples_from_arrays(test_x, test_y),
        rows=rows,
        columns=columns,
        class_count=class_count,
        provenance={"source": "patterns", "path": str(directory), "validation": validation},
    )


__all__ = ["load_patterns", "read_patterns"]
