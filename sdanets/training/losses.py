"""Per-sample cost registry used when reporting fine-tuning losses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

from ..core.costs import binary_cross_entropy, least_squares, multi_class_cross_entropy
from ..core.types import Array

CostFn = Callable[[Array, Array], float]


@dataclass(frozen=True)
class Loss:
    """Named cost of an output vector against its target vector."""

    name: str
    fn: CostFn

    def __call__(self, target: Array, output: Array) -> float:
        return self.fn(target, output)


class LossRegistry:
    """Central registry for cost functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: CostFn) -> None:
        self._registry[name] = Loss(name, fn)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def get(self, name: str) -> Loss:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]


REGISTRY = LossRegistry()

REGISTRY.register("ce", multi_class_cross_entropy)
REGISTRY.register("bce", binary_cross_entropy)
REGISTRY.register("lsm", least_squares)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
