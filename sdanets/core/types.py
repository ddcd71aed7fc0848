"""Core typing contracts for sdanets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Union

import numpy as np

Array = np.ndarray


class UniformSource(Protocol):
    """Uniform random stream consumed by weight initialisation and corruption.

    ``numpy.random.Generator`` satisfies this protocol out of the box.
    """

    def random(self, size: Optional[Union[int, tuple]] = None) -> Union[float, Array]:
        """Return uniform doubles in ``[0, 1)``."""

    def bytes(self, length: int) -> bytes:
        """Return ``length`` raw uniform bytes."""


def make_uniform_source(seed: int) -> np.random.Generator:
    """Return a deterministic uniform source for ``seed``."""

    return np.random.default_rng(seed)


@dataclass(frozen=True, eq=False)
class Sample:
    """A labelled feature vector. The image is copied and made read-only."""

    label: int
    image: Array

    def __post_init__(self) -> None:
        image = np.array(self.image, dtype=np.float64).reshape(-1)
        image.flags.writeable = False
        object.__setattr__(self, "image", image)
        object.__setattr__(self, "label", int(self.label))


@dataclass(frozen=True)
class FineTuneResult:
    """Outcome of the early-stopping fine-tuning loop."""

    best_validation_error: float
    test_error: float
    best_epoch: int
    epochs: int


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`sdanets.training.pipelines.run_pipeline`."""

    epochs: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    best_validation_error: float = float("nan")
    test_error: float = float("nan")
    pretrain_costs: list[list[float]] = field(default_factory=list)
