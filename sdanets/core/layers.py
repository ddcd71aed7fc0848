"""Fully connected layers with hand-derived delta rules."""

from __future__ import annotations

from typing import Callable, Optional, Union

import numpy as np

from .activations import SIGMOID, SOFTMAX, Activation
from .errors import ConfigurationError, ShapeMismatchError
from .gradients import ParameterGradients
from .parallel import SERIAL, RowPool
from .types import Array, UniformSource

Signal = Union[Array, Callable[[int], float]]


def initialize_weights(
    rng: UniformSource, n_in: int, n_out: int, activation: Activation = SIGMOID
) -> Array:
    """Uniform ``+-sqrt(6 / (n_in + n_out))`` initialisation (Glorot & Bengio).

    Sigmoid units get four times the range of tanh units.
    """

    bound = np.sqrt(6.0 / (n_in + n_out))
    uniform = np.asarray(rng.random((n_out, n_in)), dtype=np.float64)
    weight = (2.0 * uniform - 1.0) * bound
    if activation is SIGMOID:
        weight *= 4.0
    return weight


def _as_signal(signal: Signal, size: int) -> Array:
    if callable(signal):
        return np.fromiter((signal(i) for i in range(size)), dtype=np.float64, count=size)
    values = np.asarray(signal, dtype=np.float64)
    if values.shape != (size,):
        raise ShapeMismatchError(f"Expected a signal of length {size}, got shape {values.shape}")
    return values


class Layer:
    """A weight matrix ``(n_out, n_in)``, a bias vector and an activation.

    Subclasses supply :meth:`delta`, the gradient of the cost with respect to
    the layer's pre-activations.
    """

    def __init__(
        self,
        weight: Array,
        bias: Array,
        activation: Activation,
        pool: Optional[RowPool] = None,
    ) -> None:
        if weight.ndim != 2:
            raise ShapeMismatchError(f"Weight must be 2-D, got shape {weight.shape}")
        n_out, n_in = weight.shape
        if n_in <= 0 or n_out <= 0:
            raise ConfigurationError("Layer widths must be positive")
        if bias.shape != (n_out,):
            raise ShapeMismatchError(
                f"Bias shape {bias.shape} does not match weight rows {n_out}"
            )
        if weight.dtype != np.float64 or bias.dtype != np.float64:
            raise ShapeMismatchError("Layer parameters must be float64 arrays")
        self.weight = weight
        self.bias = bias
        self.activation = activation
        self.pool = pool or SERIAL
        # Per-row update terms are written here, one disjoint row slice per task
        self._scratch = np.empty_like(weight)

    @property
    def n_in(self) -> int:
        return int(self.weight.shape[1])

    @property
    def n_out(self) -> int:
        return int(self.weight.shape[0])

    def _check_input(self, input: Array) -> Array:
        x = np.asarray(input, dtype=np.float64)
        if x.shape != (self.n_in,):
            raise ShapeMismatchError(f"Expected input of length {self.n_in}, got {x.shape}")
        return x

    def compute(self, input: Array, out: Optional[Array] = None) -> Array:
        """Return ``activation(W @ input + b)`` without touching any state."""

        x = self._check_input(input)
        if out is None:
            out = np.empty(self.n_out, dtype=np.float64)
        forward = self.activation.forward
        elementwise = self.activation.elementwise

        def _rows(rows: slice) -> None:
            np.matmul(self.weight[rows], x, out=out[rows])
            out[rows] += self.bias[rows]
            if elementwise:
                forward(out[rows], out=out[rows])

        self.pool.map_rows(_rows, self.n_out)
        if not elementwise:
            forward(out, out=out)
        return out

    def delta(self, output: Array, upper_info: Array) -> Array:
        raise NotImplementedError

    def get_parameter_gradients(
        self,
        input: Array,
        output: Array,
        upper_info: Signal,
        learning_rate: float,
        gradients: ParameterGradients,
    ) -> Array:
        """Write this sample's updates into ``gradients``.

        Returns the signal the layer below consumes as its ``upper_info``:
        ``lower_info[j] = sum_i snapshot[i, j] * delta[i]``, read before any
        update of this step is written.
        """

        if gradients.weight.shape != self.weight.shape or gradients.bias.shape != self.bias.shape:
            raise ShapeMismatchError("Gradient accumulator does not match layer parameters")
        x = self._check_input(input)
        delta = self.delta(np.asarray(output, dtype=np.float64), _as_signal(upper_info, self.n_out))
        lower_info = gradients.snapshot.T @ delta
        step = delta * learning_rate
        grad_weight = gradients.weight
        grad_bias = gradients.bias
        scratch = self._scratch

        def _rows(rows: slice) -> None:
            np.outer(step[rows], x, out=scratch[rows])
            grad_weight[rows] -= scratch[rows]
            grad_bias[rows] -= step[rows]

        self.pool.map_rows(_rows, self.n_out)
        return lower_info


class HiddenLayer(Layer):
    """Sigmoid layer; its parameters are shared with a denoising autoencoder."""

    def __init__(
        self, rng: UniformSource, n_in: int, n_out: int, pool: Optional[RowPool] = None
    ) -> None:
        if n_in <= 0 or n_out <= 0:
            raise ConfigurationError(f"Hidden layer widths must be positive, got {n_in}x{n_out}")
        weight = initialize_weights(rng, n_in, n_out, SIGMOID)
        super().__init__(weight, np.zeros(n_out, dtype=np.float64), SIGMOID, pool)

    @classmethod
    def from_parameters(
        cls, weight: Array, bias: Array, pool: Optional[RowPool] = None
    ) -> "HiddenLayer":
        layer = cls.__new__(cls)
        Layer.__init__(layer, weight, bias, SIGMOID, pool)
        return layer

    def delta(self, output: Array, upper_info: Array) -> Array:
        return upper_info * SIGMOID.derivative(output)


class OutputLayer(Layer):
    """Softmax (multi-class logistic regression) layer, zero initialised.

    Its delta ``output - target`` is the combined gradient of softmax and
    cross-entropy with respect to the pre-activations.
    """

    def __init__(self, n_in: int, n_out: int, pool: Optional[RowPool] = None) -> None:
        if n_in <= 0 or n_out <= 0:
            raise ConfigurationError(f"Output layer widths must be positive, got {n_in}x{n_out}")
        super().__init__(
            np.zeros((n_out, n_in), dtype=np.float64),
            np.zeros(n_out, dtype=np.float64),
            SOFTMAX,
            pool,
        )

    @classmethod
    def from_parameters(
        cls, weight: Array, bias: Array, pool: Optional[RowPool] = None
    ) -> "OutputLayer":
        layer = cls.__new__(cls)
        Layer.__init__(layer, weight, bias, SOFTMAX, pool)
        return layer

    def delta(self, output: Array, upper_info: Array) -> Array:
        return output - upper_info

    def predict(self, input: Array) -> int:
        """Return the most probable class (first index on ties)."""

        return int(np.argmax(self.compute(input)))


__all__ = ["HiddenLayer", "Layer", "OutputLayer", "initialize_weights"]
