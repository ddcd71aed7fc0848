"""Two-phase training loops: greedy pretraining, then early-stopped fine-tuning."""

from __future__ import annotations

import logging
import math
from typing import Any, List, Mapping, Sequence

from ..core.stack import StackedDenoisingAutoEncoder
from ..core.types import FineTuneResult, Sample
from ..data.registry import LearningSet
from .metrics import evaluate

logger = logging.getLogger(__name__)


class Trainer:
    """Drive a :class:`StackedDenoisingAutoEncoder` through both training phases.

    Epoch metrics are delivered to ``callbacks`` and to the per-split loggers
    (``pretrain``, ``train``, ``val``, ``test``) as ``on_epoch(epoch, metrics)``.
    """

    def __init__(
        self,
        network: StackedDenoisingAutoEncoder,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.network = network
        self.callbacks = list(callbacks or [])

    def pretrain(
        self,
        dataset: Sequence[Sample],
        *,
        epochs: int,
        learning_rate: float,
        corruption_levels: Sequence[float],
        batch_size: int = 1,
        validation: Sequence[Sample] | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> List[List[float]]:
        """Pretrain every hidden layer bottom to top; return per-layer epoch costs.

        Layer ``k`` uses ``corruption_levels[k]``; a shorter list repeats its
        last value.
        """

        if not corruption_levels:
            raise ValueError("corruption_levels must not be empty")
        loggers = split_loggers or {}
        costs: List[List[float]] = []
        for index in range(len(self.network.hidden_layers)):
            noise = float(corruption_levels[min(index, len(corruption_levels) - 1)])

            def _report(epoch: int, cost: float, index: int = index, noise: float = noise) -> None:
                metrics = {"layer": index, "cost": cost}
                if validation:
                    metrics["validation_cost"] = self.network.pretraining_cost(
                        index, validation, noise
                    )
                logger.info(
                    "Pre-training layer %d, epoch %d, cost %.6f", index, epoch + 1, cost
                )
                self._emit("pretrain", epoch + 1, metrics, loggers)

            costs.append(
                self.network.pretrain(
                    index,
                    dataset,
                    epochs=epochs,
                    learning_rate=learning_rate,
                    noise=noise,
                    batch_size=batch_size,
                    callback=_report,
                )
            )
        return costs

    def fine_tune(
        self,
        learning_set: LearningSet,
        *,
        epochs: int,
        learning_rate: float,
        batch_size: int = 1,
        patience: int = 10,
        patience_increase: float = 2.0,
        improvement_threshold: float = 0.995,
        loss: str = "ce",
        metric_names: Sequence[str] = ("error_rate", "loss"),
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> FineTuneResult:
        """Fine-tune until patience runs out or ``epochs`` is reached.

        ``patience`` counts epochs worth of training batches. A validation
        error below ``best * improvement_threshold`` extends it to
        ``iteration * patience_increase`` batches. The test error is measured
        whenever the validation error improves.
        """

        if epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {epochs}")
        loggers = split_loggers or {}
        names = list(metric_names)
        if "error_rate" not in names:
            names.insert(0, "error_rate")
        training = learning_set.training
        selection = learning_set.validation or learning_set.test or training
        test = learning_set.test

        n_train_batches = max(1, len(training) // batch_size)
        patience_batches = patience * n_train_batches
        best_error = math.inf
        test_error = math.nan
        best_epoch = 0
        iteration = -1
        epoch = 0

        while iteration < patience_batches and epoch < epochs:
            epoch += 1
            train_loss = self.network.fine_tune(training, learning_rate, batch_size)
            self._emit("train", epoch, {"loss": train_loss}, loggers)

            val_metrics = evaluate(self.network, selection, names=names, loss=loss)
            self._emit("val", epoch, val_metrics, loggers)
            error = val_metrics["error_rate"]
            logger.info("epoch %d, validation error %.4f %%", epoch, error * 100.0)

            iteration = n_train_batches * epoch - 1
            if error < best_error:
                if error < best_error * improvement_threshold:
                    patience_batches = max(patience_batches, int(iteration * patience_increase))
                best_error = error
                best_epoch = epoch
                if test:
                    test_metrics = evaluate(self.network, test, names=names, loss=loss)
                    test_error = test_metrics["error_rate"]
                    self._emit("test", epoch, test_metrics, loggers)
                    logger.info(
                        "     epoch %d, test error of best model %.4f %%",
                        epoch,
                        test_error * 100.0,
                    )

        logger.info(
            "Optimization complete with best validation score of %.4f %%, on epoch %d, "
            "with test performance %.4f %%",
            best_error * 100.0,
            best_epoch,
            test_error * 100.0,
        )
        return FineTuneResult(
            best_validation_error=float(best_error),
            test_error=float(test_error),
            best_epoch=best_epoch,
            epochs=epoch,
        )

    def run(
        self,
        learning_set: LearningSet,
        *,
        pretrain: Mapping[str, Any],
        finetune: Mapping[str, Any],
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> tuple[List[List[float]], FineTuneResult]:
        """Pretrain, attach the output layer if missing, then fine-tune."""

        costs = self.pretrain(
            learning_set.training,
            validation=learning_set.validation,
            split_loggers=split_loggers,
            **pretrain,
        )
        if not self.network.finalized:
            self.network.set_output_layer(learning_set.class_count)
        result = self.fine_tune(learning_set, split_loggers=split_loggers, **finetune)
        return costs, result

    def _emit(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
        for callback in loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["Trainer"]
