"""Utility helpers for learning-set loaders."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import numpy as np

from ..core.types import UniformSource

DEFAULT_DATA_SUBDIR = Path.home() / ".cache" / "sdanets"


def resolve_data_dir(data_dir: str | Path | None = None) -> Path:
    """Resolve the directory learning-set files are read from."""

    env_dir = os.environ.get("SDANETS_DATA_DIR")
    return Path(data_dir or env_dir or DEFAULT_DATA_SUBDIR)


def derive_seed(rng: UniformSource) -> int:
    """Draw a 32-bit seed from ``rng`` so child generators stay reproducible."""

    return int.from_bytes(rng.bytes(4), "little")


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/validation/test partitions."""

    train: np.ndarray
    val: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {
            "train": int(self.train.size),
            "val": int(self.val.size),
            "test": int(self.test.size),
        }


def deterministic_split(
    n_samples: int,
    *,
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
) -> SplitIndices:
    """Return shuffled, seed-determined indices for the requested ratios."""

    if not 0 <= val_split < 1:
        raise ValueError("val_split must be in [0, 1)")
    if not 0 <= test_split < 1:
        raise ValueError("test_split must be in [0, 1)")
    if val_split + test_split >= 1:
        raise ValueError("val_split + test_split must be < 1")

    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)

    test_size = int(round(n_samples * test_split))
    val_size = int(round(n_samples * val_split))
    # At least one sample per requested split when possible
    test_size = min(max(test_size, 1 if test_split > 0 else 0), n_samples)
    remaining = n_samples - test_size
    val_size = min(max(val_size, 1 if val_split > 0 else 0), remaining)
    if n_samples - val_size - test_size <= 0:
        raise ValueError("Not enough samples for the requested splits")

    return SplitIndices(
        train=indices[test_size + val_size :],
        val=indices[test_size : test_size + val_size],
        test=indices[:test_size],
    )


def split_tail(n_samples: int, validation: int) -> tuple[slice, slice]:
    """Slices keeping the last ``validation`` samples apart from the rest."""

    if not 0 <= validation < n_samples:
        raise ValueError(
            f"validation count must be in [0, {n_samples}), got {validation}"
        )
    cut = n_samples - validation
    return slice(0, cut), slice(cut, n_samples)


__all__ = [
    "SplitIndices",
    "derive_seed",
    "deterministic_split",
    "resolve_data_dir",
    "split_tail",
]
