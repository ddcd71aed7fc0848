"""Stacked denoising autoencoder: hidden layers, their autoencoders, softmax head."""

from __future__ import annotations

import logging
from typing import Callable, Iterator, List, Optional, Sequence

import numpy as np

from .autoencoder import DenoisingAutoEncoder
from .costs import multi_class_cross_entropy, one_hot
from .errors import ConfigurationError, FrozenStackError, StackNotFinalizedError
from .gradients import ParameterGradients
from .layers import HiddenLayer, Layer, OutputLayer
from .parallel import SERIAL, RowPool
from .types import Array, Sample, UniformSource

logger = logging.getLogger(__name__)

EpochCallback = Callable[[int, float], None]


class HiddenLayerCollection:
    """Ordered hidden layers, each paired with the autoencoder that pretrains it."""

    def __init__(self, rng: UniformSource, n_in: int, pool: Optional[RowPool] = None) -> None:
        if n_in <= 0:
            raise ConfigurationError(f"Input width must be positive, got {n_in}")
        self.rng = rng
        self.n_in = int(n_in)
        self.pool = pool or SERIAL
        self._layers: List[HiddenLayer] = []
        self._autoencoders: List[DenoisingAutoEncoder] = []
        self._frozen = False

    def __len__(self) -> int:
        return len(self._layers)

    def __getitem__(self, index: int) -> HiddenLayer:
        return self._layers[index]

    def __iter__(self) -> Iterator[HiddenLayer]:
        return iter(self._layers)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def output_width(self) -> int:
        return self._layers[-1].n_out if self._layers else self.n_in

    def input_width(self, index: int) -> int:
        if not 0 <= index <= len(self._layers):
            raise IndexError(f"Layer index {index} out of range for {len(self)} layers")
        return self.n_in if index == 0 else self._layers[index - 1].n_out

    def set(self, index: int, neurons: int) -> HiddenLayer:
        """Append (``index == len``) or replace the hidden layer at ``index``.

        Replacing a layer re-initialises the one above it so its input width
        follows the new neuron count.
        """

        if self._frozen:
            raise FrozenStackError("Hidden layers are frozen once the output layer is set")
        if not 0 <= index <= len(self._layers):
            raise IndexError(f"Layer index {index} out of range for {len(self)} layers")
        if neurons <= 0:
            raise ConfigurationError(f"A hidden layer needs at least one neuron, got {neurons}")

        layer = HiddenLayer(self.rng, self.input_width(index), neurons, self.pool)
        if index == len(self._layers):
            self._layers.append(layer)
        else:
            self._layers[index] = layer
            if index + 1 < len(self._layers):
                above = self._layers[index + 1]
                self._layers[index + 1] = HiddenLayer(self.rng, neurons, above.n_out, self.pool)
        self._rebuild_autoencoders(index)
        return layer

    def add(self, neurons: int) -> HiddenLayer:
        return self.set(len(self._layers), neurons)

    def _rebuild_autoencoders(self, start: int) -> None:
        del self._autoencoders[start:]
        for k in range(start, len(self._layers)):
            self._autoencoders.append(
                DenoisingAutoEncoder(self._layers[k], self._layers[:k], self.rng, self.pool)
            )

    def freeze(self) -> None:
        self._frozen = True

    def autoencoder(self, index: int) -> DenoisingAutoEncoder:
        return self._autoencoders[index]

    @property
    def autoencoders(self) -> List[DenoisingAutoEncoder]:
        return list(self._autoencoders)

    def compute(self, input: Array, stop_layer: Optional[int] = None) -> Array:
        """Forward ``input`` through the first ``stop_layer`` layers (all by default)."""

        x = np.asarray(input, dtype=np.float64)
        for layer in self._layers[:stop_layer]:
            x = layer.compute(x)
        return x


class StackedDenoisingAutoEncoder:
    """Hidden sigmoid layers pretrained as denoising autoencoders, then a softmax layer.

    Build the hidden layers, pretrain them bottom to top, call
    :meth:`set_output_layer` and fine-tune the whole network on labelled data.
    """

    def __init__(self, rng: UniformSource, n_in: int, workers: int = 1) -> None:
        self.rng = rng
        self.pool = RowPool(workers) if workers > 1 else SERIAL
        self._hidden = HiddenLayerCollection(rng, n_in, self.pool)
        self._output: Optional[OutputLayer] = None

    @classmethod
    def from_layer_sizes(
        cls, rng: UniformSource, layer_sizes: Sequence[int], workers: int = 1
    ) -> "StackedDenoisingAutoEncoder":
        """Build ``[inputs, hidden..., classes]`` and finalise the output layer."""

        sizes = [int(size) for size in layer_sizes]
        if len(sizes) < 2:
            raise ConfigurationError(
                f"Need at least an input width and a class count, got {sizes}"
            )
        network = cls(rng, sizes[0], workers=workers)
        for neurons in sizes[1:-1]:
            network.add_hidden_layer(neurons)
        network.set_output_layer(sizes[-1])
        return network

    @property
    def n_in(self) -> int:
        return self._hidden.n_in

    @property
    def hidden_layers(self) -> HiddenLayerCollection:
        return self._hidden

    @property
    def output_layer(self) -> OutputLayer:
        if self._output is None:
            raise StackNotFinalizedError("The output layer has not been set")
        return self._output

    @property
    def finalized(self) -> bool:
        return self._output is not None

    @property
    def layers(self) -> List[Layer]:
        layers: List[Layer] = list(self._hidden)
        if self._output is not None:
            layers.append(self._output)
        return layers

    @property
    def autoencoders(self) -> List[DenoisingAutoEncoder]:
        return self._hidden.autoencoders

    @property
    def layer_sizes(self) -> List[int]:
        return [self.n_in] + [layer.n_out for layer in self.layers]

    def add_hidden_layer(self, neurons: int) -> HiddenLayer:
        return self._hidden.add(neurons)

    def set_output_layer(self, classes: int) -> OutputLayer:
        """Attach the softmax layer and freeze the hidden layers."""

        if self._output is not None:
            raise FrozenStackError("The output layer is already set")
        if classes < 2:
            raise ConfigurationError(f"Need at least two classes, got {classes}")
        self._hidden.freeze()
        self._output = OutputLayer(self._hidden.output_width, classes, self.pool)
        return self._output

    # -- pretraining -----------------------------------------------------
    def pretrain(
        self,
        index: int,
        dataset: Sequence[Sample],
        *,
        epochs: int,
        learning_rate: float,
        noise: float,
        batch_size: int = 1,
        callback: Optional[EpochCallback] = None,
    ) -> List[float]:
        """Train hidden layer ``index`` as a denoising autoencoder.

        Returns the mean reconstruction cost of every epoch.
        """

        if epochs < 0:
            raise ValueError(f"epochs must be >= 0, got {epochs}")
        autoencoder = self._hidden.autoencoder(index)
        costs: List[float] = []
        for epoch in range(epochs):
            cost = autoencoder.train(dataset, learning_rate, noise, batch_size)
            costs.append(cost)
            logger.debug("pretrain layer=%d epoch=%d cost=%.6f", index, epoch, cost)
            if callback is not None:
                callback(epoch, cost)
        return costs

    def pretraining_cost(self, index: int, dataset: Sequence[Sample], noise: float) -> float:
        return self._hidden.autoencoder(index).compute_cost(dataset, noise)

    # -- supervised ------------------------------------------------------
    def output(self, image: Array) -> Array:
        """Class probabilities for ``image``."""

        return self.output_layer.compute(self._hidden.compute(image))

    def predict(self, image: Array) -> int:
        return self.output_layer.predict(self._hidden.compute(image))

    def compute_error_rate(self, dataset: Sequence[Sample]) -> float:
        if len(dataset) == 0:
            raise ValueError("Cannot compute an error rate over an empty dataset")
        errors = sum(1 for sample in dataset if self.predict(sample.image) != sample.label)
        return errors / len(dataset)

    def fine_tune(
        self,
        dataset: Sequence[Sample],
        learning_rate: float,
        batch_size: int = 1,
        accumulate: Optional[bool] = None,
    ) -> float:
        """One supervised pass over ``dataset``; returns the mean cross-entropy.

        ``batch_size == 1`` updates online unless ``accumulate`` asks for
        batch accumulators; larger batches always accumulate.
        """

        output_layer = self.output_layer
        if len(dataset) == 0:
            raise ValueError("dataset must contain at least one sample")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        use_batch = batch_size > 1 if accumulate is None else bool(accumulate)
        layers = self.layers
        factory = ParameterGradients.for_batch if use_batch else ParameterGradients.for_online
        gradients = [factory(layer.weight, layer.bias) for layer in layers]
        classes = output_layer.n_out

        total = 0.0
        for start in range(0, len(dataset), batch_size):
            batch = dataset[start : start + batch_size]
            for sample in batch:
                total += self._learn(sample, layers, gradients, learning_rate, classes)
            for accumulator in gradients:
                accumulator.update_parameters(len(batch))
        return total / len(dataset)

    def _learn(
        self,
        sample: Sample,
        layers: List[Layer],
        gradients: List[ParameterGradients],
        learning_rate: float,
        classes: int,
    ) -> float:
        target = one_hot(sample.label, classes)
        outputs = [sample.image]
        for layer in layers:
            outputs.append(layer.compute(outputs[-1]))
        cost = multi_class_cross_entropy(target, outputs[-1])

        upper_info: Array = target
        for k in range(len(layers) - 1, -1, -1):
            upper_info = layers[k].get_parameter_gradients(
                outputs[k], outputs[k + 1], upper_info, learning_rate, gradients[k]
            )
        return cost

    def close(self) -> None:
        if self.pool is not SERIAL:
            self.pool.close()

    def __enter__(self) -> "StackedDenoisingAutoEncoder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["HiddenLayerCollection", "StackedDenoisingAutoEncoder"]
