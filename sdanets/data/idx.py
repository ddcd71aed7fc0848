"""MNIST learning set read from the binary IDX files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple

import numpy as np

from .registry import LearningSet, register_learning_set, samples_from_arrays
from .utils import resolve_data_dir, split_tail

logger = logging.getLogger(__name__)

LABEL_MAGIC = 0x00000801
IMAGE_MAGIC = 0x00000803


class IdxFormatError(ValueError):
    """Raised when an IDX file is truncated or carries an unexpected header."""


def _read_header(raw: bytes, count: int, path: Path) -> Tuple[int, ...]:
    size = 4 * count
    if len(raw) < size:
        raise IdxFormatError(f"{path}: truncated header")
    return tuple(int(v) for v in np.frombuffer(raw[:size], dtype=">u4"))


def read_idx_labels(path: str | Path) -> np.ndarray:
    """Return the uint8 labels of an ``idx1-ubyte`` file."""

    path = Path(path)
    raw = path.read_bytes()
    magic, length = _read_header(raw, 2, path)
    if magic != LABEL_MAGIC:
        raise IdxFormatError(f"{path}: bad label magic {magic:#x}")
    labels = np.frombuffer(raw, dtype=np.uint8, offset=8)
    if labels.size != length:
        raise IdxFormatError(f"{path}: header announces {length} labels, found {labels.size}")
    return labels


def read_idx_images(path: str | Path) -> np.ndarray:
    """Return ``(length, rows, columns)`` pixel intensities scaled to ``[0, 1]``."""

    path = Path(path)
    raw = path.read_bytes()
    magic, length, rows, columns = _read_header(raw, 4, path)
    if magic != IMAGE_MAGIC:
        raise IdxFormatError(f"{path}: bad image magic {magic:#x}")
    pixels = np.frombuffer(raw, dtype=np.uint8, offset=16)
    if pixels.size != length * rows * columns:
        raise IdxFormatError(
            f"{path}: expected {length * rows * columns} pixels, found {pixels.size}"
        )
    return pixels.reshape(length, rows, columns).astype(np.float64) / 255.0


def _load_split(directory: Path, prefix: str) -> Tuple[np.ndarray, np.ndarray]:
    labels = read_idx_labels(directory / f"{prefix}-labels.idx1-ubyte")
    images = read_idx_images(directory / f"{prefix}-images.idx3-ubyte")
    if labels.shape[0] != images.shape[0]:
        raise IdxFormatError(
            f"{prefix}: {labels.shape[0]} labels for {images.shape[0]} images"
        )
    return images, labels


@register_learning_set("mnist")
def load_mnist(
    *,
    data_dir: str | Path | None = None,
    validation: int = 10000,
    max_train: int | None = None,
    max_test: int | None = None,
    **_: object,
) -> LearningSet:
    """Load MNIST; the last ``validation`` training images form the validation split."""

    directory = resolve_data_dir(data_dir)
    train_images, train_labels = _load_split(directory, "train")
    test_images, test_labels = _load_split(directory, "t10k")
    if train_images.shape[1:] != test_images.shape[1:]:
        raise IdxFormatError("Training and test images have different geometry")
    rows, columns = (int(v) for v in train_images.shape[1:])

    fit, held_out = split_tail(train_images.shape[0], validation)
    flat_train = train_images.reshape(train_images.shape[0], -1)
    training = samples_from_arrays(flat_train[fit][:max_train], train_labels[fit][:max_train])
    validation_samples = samples_from_arrays(flat_train[held_out], train_labels[held_out])
    test = samples_from_arrays(
        test_images.reshape(test_images.shape[0], -1)[:max_test], test_labels[:max_test]
    )
    logger.info(
        "Loaded MNIST from %s: %d train, %d val, %d test",
        directory,
        len(training),
        len(validation_samples),
        len(test),
    )
    return LearningSet(
        name="mnist",
        training=training,
        validation=validation_samples,
        test=test,
        rows=rows,
        columns=columns,
        class_count=10,
        provenance={
            "source": "idx",
            "path": str(directory),
            "validation": validation,
            "max_train": max_train,
            "max_test": max_test,
        },
    )


__all__ = ["IdxFormatError", "load_mnist", "read_idx_images", "read_idx_labels"]
