"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Mapping, Tuple

EpochLogger = Callable[[int, Mapping[str, float]], None]


class PlotAdapter:
    """Collect epoch metrics per split and optionally draw them with matplotlib.

    ``pretrain_cost.png`` shows one reconstruction-cost curve per hidden layer;
    ``fine_tune.png`` shows the training loss and the validation/test error
    rates.
    """

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: Dict[str, List[Tuple[int, Mapping[str, float]]]] = {}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def logger(self, split: str) -> EpochLogger:
        def _record(epoch: int, metrics: Mapping[str, float]) -> None:
            if self.enable_plots:
                self._history.setdefault(split, []).append((epoch, dict(metrics)))

        return _record

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.logger("train")(epoch, metrics)

    def close(self) -> List[Path]:
        if not self.enable_plots or not self._history:
            return []
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        written: List[Path] = []
        pretrain = self._history.get("pretrain", [])
        if pretrain:
            fig, ax = plt.subplots()
            layers = sorted({int(m.get("layer", 0)) for _, m in pretrain})
            for layer in layers:
                points = [(e, m["cost"]) for e, m in pretrain if int(m.get("layer", 0)) == layer]
                epochs, costs = zip(*points)
                ax.plot(epochs, costs, label=f"layer {layer}")
            ax.set_xlabel("Epoch")
            ax.set_ylabel("Reconstruction cost")
            ax.set_title("Pre-training")
            ax.legend()
            written.append(self._save(fig, plt, "pretrain_cost.png"))

        curves = [
            (split, key)
            for split, key in (("train", "loss"), ("val", "error_rate"), ("test", "error_rate"))
            if self._history.get(split)
        ]
        if curves:
            fig, ax = plt.subplots()
            for split, key in curves:
                points = [(e, m[key]) for e, m in self._history[split] if key in m]
                if points:
                    epochs, values = zip(*points)
                    ax.plot(epochs, values, marker=".", label=f"{split} {key}")
            ax.set_xlabel("Epoch")
            ax.set_title("Fine-tuning")
            ax.legend()
            written.append(self._save(fig, plt, "fine_tune.png"))
        return written

    def _save(self, fig, plt, name: str) -> Path:
        path = self.run_dir / name
        fig.savefig(path)
        plt.close(fig)
        return path

    __call__ = on_epoch


__all__ = ["PlotAdapter"]
