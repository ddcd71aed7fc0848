"""Learning-set registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Sequence, Tuple

import numpy as np

from ..core.types import Sample


@dataclass(frozen=True)
class LearningSet:
    """Labelled samples split into training, validation and test partitions.

    Attributes
    ----------
    rows, columns:
        Image geometry; every sample carries ``rows * columns`` features.
    class_count:
        Number of labels; labels lie in ``[0, class_count)``.
    provenance:
        Free-form description of where the samples came from, copied into the
        run manifest.
    """

    name: str
    training: Tuple[Sample, ...]
    validation: Tuple[Sample, ...]
    test: Tuple[Sample, ...]
    rows: int
    columns: int
    class_count: int
    provenance: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "training", tuple(self.training))
        object.__setattr__(self, "validation", tuple(self.validation))
        object.__setattr__(self, "test", tuple(self.test))
        _validate(self)

    @property
    def feature_count(self) -> int:
        return self.rows * self.columns

    @property
    def splits(self) -> Dict[str, int]:
        return {
            "train": len(self.training),
            "val": len(self.validation),
            "test": len(self.test),
        }

    def subset(
        self, training: int | None = None, validation: int | None = None, test: int | None = None
    ) -> "LearningSet":
        """Return a copy keeping only the first samples of each partition."""

        provenance = dict(self.provenance)
        provenance["subset"] = {"train": training, "val": validation, "test": test}
        return LearningSet(
            name=self.name,
            training=self.training[:training],
            validation=self.validation[:validation],
            test=self.test[:test],
            rows=self.rows,
            columns=self.columns,
            class_count=self.class_count,
            provenance=provenance,
        )


def samples_from_arrays(images: np.ndarray, labels: Sequence[int]) -> Tuple[Sample, ...]:
    """Pair each row of ``images`` with its label."""

    images = np.asarray(images, dtype=np.float64)
    if images.shape[0] != len(labels):
        raise ValueError(f"{images.shape[0]} images but {len(labels)} labels")
    return tuple(Sample(int(label), image) for label, image in zip(labels, images))


LearningSetFactory = Callable[..., LearningSet]


_REGISTRY: MutableMapping[str, LearningSetFactory] = {}


def register_learning_set(
    name: str | None = None,
    factory: LearningSetFactory | None = None,
) -> Callable[[LearningSetFactory], LearningSetFactory] | LearningSetFactory:
    """Register a learning-set factory.

    Works as a decorator::

        @register_learning_set("patterns")
        def load_patterns(**options):
            ...

    or directly::

        register_learning_set("patterns", load_patterns)
    """

    def _decorator(func: LearningSetFactory) -> LearningSetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_learning_set requires a name when used without a decorator")
    return _decorator


def get_learning_set(name: str, /, **options: Any) -> LearningSet:
    """Build the learning set registered as ``name``."""

    if name not in _REGISTRY:
        raise KeyError(f"Unknown learning set: {name}")
    learning_set = _REGISTRY[name](**options)
    if not learning_set.training:
        raise ValueError(f"Learning set {name!r} has no training samples")
    return learning_set


def available_learning_sets() -> Iterable[str]:
    """Return the sorted list of registered learning-set names."""

    return sorted(_REGISTRY)


def _validate(learning_set: LearningSet) -> None:
    if learning_set.rows <= 0 or learning_set.columns <= 0:
        raise ValueError("rows and columns must be positive")
    if learning_set.class_count < 2:
        raise ValueError("A learning set needs at least two classes")
    width = learning_set.feature_count
    for split in (learning_set.training, learning_set.validation, learning_set.test):
        for sample in split:
            if sample.image.shape != (width,):
                raise ValueError(
                    f"Sample has {sample.image.shape[0]} features, expected {width}"
                )
            if not 0 <= sample.label < learning_set.class_count:
                raise ValueError(
                    f"Label {sample.label} outside [0, {learning_set.class_count})"
                )


__all__ = [
    "LearningSet",
    "available_learning_sets",
    "get_learning_set",
    "register_learning_set",
    "samples_from_arrays",
]
