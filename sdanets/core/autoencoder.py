"""Denoising autoencoder tied to a hidden layer of the stack."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .activations import sigmoid, sigmoid_derivative
from .costs import binary_cross_entropy
from .gradients import GradientBuffer, ParameterGradients
from .layers import HiddenLayer, Layer
from .parallel import RowPool
from .types import Array, Sample, UniformSource


def _check_noise(noise: float) -> float:
    noise = float(noise)
    if not 0.0 <= noise <= 1.0:
        raise ValueError(f"noise must be in [0, 1], got {noise}")
    return noise


def _check_dataset(dataset: Sequence[Sample]) -> Sequence[Sample]:
    if len(dataset) == 0:
        raise ValueError("dataset must contain at least one sample")
    return dataset


class DenoisingAutoEncoder:
    """Reconstructs a hidden layer's input from a corrupted copy of it.

    The encoder weight and bias are the hidden layer's own arrays, so
    pretraining moves the network directly. Decoding uses the transposed
    weight and a separate visible bias owned by the autoencoder.
    """

    def __init__(
        self,
        layer: HiddenLayer,
        layers_before: Sequence[Layer],
        rng: UniformSource,
        pool: Optional[RowPool] = None,
    ) -> None:
        self.layer = layer
        self.layers_before: Tuple[Layer, ...] = tuple(layers_before)
        self.rng = rng
        self.pool = pool or layer.pool
        self.visible_bias = np.zeros(layer.n_in, dtype=np.float64)
        self._decoder_term = np.empty_like(layer.weight)
        self._encoder_term = np.empty_like(layer.weight)

    @property
    def weight(self) -> Array:
        return self.layer.weight

    @property
    def hidden_bias(self) -> Array:
        return self.layer.bias

    def layer_input(self, image: Array) -> Array:
        """Propagate ``image`` through the layers below this autoencoder."""

        x = np.asarray(image, dtype=np.float64)
        for layer in self.layers_before:
            x = layer.compute(x)
        return x

    def corrupt(self, x: Array, noise: float) -> Array:
        """Zero each coordinate independently with probability ``noise``."""

        mask = np.asarray(self.rng.random(x.shape[0])) < noise
        return np.where(mask, 0.0, x)

    def reconstruct(self, corrupted: Array) -> Tuple[Array, Array]:
        latent = self.layer.compute(corrupted)
        reconstruction = self.weight.T @ latent
        reconstruction += self.visible_bias
        sigmoid(reconstruction, out=reconstruction)
        return latent, reconstruction

    def train(
        self,
        dataset: Sequence[Sample],
        learning_rate: float,
        noise: float,
        batch_size: int = 1,
    ) -> float:
        """Run one pass over ``dataset`` and return the mean reconstruction cost.

        With ``batch_size > 1`` the updates of each batch are accumulated and
        averaged into the parameters once the batch ends.
        """

        samples = _check_dataset(dataset)
        noise = _check_noise(noise)
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if batch_size > 1:
            gradients = ParameterGradients.for_batch(self.weight, self.hidden_bias)
            visible = GradientBuffer.batch(self.visible_bias)
        else:
            gradients = ParameterGradients.for_online(self.weight, self.hidden_bias)
            visible = GradientBuffer.online(self.visible_bias)

        total = 0.0
        for start in range(0, len(samples), batch_size):
            batch = samples[start : start + batch_size]
            for sample in batch:
                total += self._learn(sample, learning_rate, noise, gradients, visible)
            gradients.update_parameters(len(batch))
            visible.apply(len(batch))
        return total / len(samples)

    def _learn(
        self,
        sample: Sample,
        learning_rate: float,
        noise: float,
        gradients: ParameterGradients,
        visible: GradientBuffer,
    ) -> float:
        x = self.layer_input(sample.image)
        x_tilde = self.corrupt(x, noise)
        latent, reconstruction = self.reconstruct(x_tilde)
        cost = binary_cross_entropy(x, reconstruction)

        out_delta = reconstruction - x
        hidden_delta = (gradients.snapshot @ out_delta) * sigmoid_derivative(latent)
        decoder_step = latent * learning_rate
        encoder_step = hidden_delta * learning_rate
        grad_weight = gradients.weight
        grad_bias = gradients.bias
        decoder_term = self._decoder_term
        encoder_term = self._encoder_term

        def _rows(rows: slice) -> None:
            # The tied weight takes the decoder and encoder terms as one update
            np.outer(decoder_step[rows], out_delta, out=decoder_term[rows])
            np.outer(encoder_step[rows], x_tilde, out=encoder_term[rows])
            decoder_term[rows] += encoder_term[rows]
            grad_weight[rows] -= decoder_term[rows]
            grad_bias[rows] -= encoder_step[rows]

        self.pool.map_rows(_rows, self.layer.n_out)
        out_delta *= learning_rate
        visible.buffer -= out_delta
        return cost

    def compute_cost(self, dataset: Sequence[Sample], noise: float) -> float:
        """Mean reconstruction cost over ``dataset`` without updating anything."""

        samples = _check_dataset(dataset)
        noise = _check_noise(noise)
        total = 0.0
        for sample in samples:
            x = self.layer_input(sample.image)
            _, reconstruction = self.reconstruct(self.corrupt(x, noise))
            total += binary_cross_entropy(x, reconstruction)
        return total / len(samples)


__all__ = ["DenoisingAutoEncoder"]
