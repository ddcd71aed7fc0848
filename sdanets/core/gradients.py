"""Online and mini-batch parameter update policies."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .types import Array


@dataclass(eq=False)
class GradientBuffer:
    """Where updates for one parameter array are written.

    Online buffers alias the live array, so every write is an immediate update.
    Batch buffers are zeroed arrays of the same shape that are averaged into the
    live array by :meth:`apply`.
    """

    target: Array
    buffer: Array
    is_batch: bool

    @classmethod
    def online(cls, target: Array) -> "GradientBuffer":
        return cls(target=target, buffer=target, is_batch=False)

    @classmethod
    def batch(cls, target: Array) -> "GradientBuffer":
        return cls(target=target, buffer=np.zeros_like(target), is_batch=True)

    def apply(self, batch_count: int) -> None:
        if not self.is_batch:
            return
        if batch_count <= 0:
            raise ValueError(f"batch_count must be positive, got {batch_count}")
        self.target += self.buffer / batch_count
        self.buffer.fill(0.0)


class ParameterGradients:
    """Gradient accumulator for one layer's (weight, bias) pair.

    ``weight`` and ``bias`` are the arrays a backward step subtracts into.
    ``snapshot`` is the weight the step reads to build the signal for the layer
    below: the live weight online, a read-only pre-batch copy in batch mode, so
    that every sample of a batch sees the same parameters.
    """

    def __init__(self, weight: GradientBuffer, bias: GradientBuffer) -> None:
        if weight.is_batch != bias.is_batch:
            raise ValueError("weight and bias buffers must use the same policy")
        self._weight = weight
        self._bias = bias
        if weight.is_batch:
            self._snapshot = weight.target.copy()
            self._snapshot.flags.writeable = False
        else:
            self._snapshot = weight.target

    @classmethod
    def for_online(cls, weight: Array, bias: Array) -> "ParameterGradients":
        return cls(GradientBuffer.online(weight), GradientBuffer.online(bias))

    @classmethod
    def for_batch(cls, weight: Array, bias: Array) -> "ParameterGradients":
        return cls(GradientBuffer.batch(weight), GradientBuffer.batch(bias))

    @property
    def is_batch(self) -> bool:
        return self._weight.is_batch

    @property
    def weight(self) -> Array:
        return self._weight.buffer

    @property
    def bias(self) -> Array:
        return self._bias.buffer

    @property
    def snapshot(self) -> Array:
        return self._snapshot

    def update_parameters(self, batch_count: int) -> None:
        """Average the accumulated batch into the live parameters and reset."""

        if not self.is_batch:
            return
        self._weight.apply(batch_count)
        self._bias.apply(batch_count)
        self._snapshot.flags.writeable = True
        np.copyto(self._snapshot, self._weight.target)
        self._snapshot.flags.writeable = False


__all__ = ["GradientBuffer", "ParameterGradients"]
