"""Pipeline assembly: learning set, stack, trainer and reporting from one config."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from ..core.stack import StackedDenoisingAutoEncoder
from ..core.types import RunResult, make_uniform_source
from ..data import registry
from ..data.utils import derive_seed
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .losses import REGISTRY as LOSS_REGISTRY
from .trainer import Trainer

logger = logging.getLogger(__name__)

SPLITS = ("pretrain", "train", "val", "test")

_PRESETS: Dict[str, Mapping[str, object]] = {
    "blobs-sda": {
        "data": {
            "name": "blobs",
            "options": {"n_samples": 300, "rows": 4, "columns": 4, "classes": 3, "seed": 0},
        },
        "model": {"hidden": [12, 8], "workers": 1},
        "pretrain": {
            "epochs": 5,
            "learning_rate": 0.05,
            "corruption_levels": [0.1, 0.2],
            "batch_size": 1,
        },
        "finetune": {
            "epochs": 30,
            "learning_rate": 0.1,
            "batch_size": 1,
            "patience": 10,
            "patience_increase": 2,
            "improvement_threshold": 0.995,
            "loss": "ce",
        },
        "train": {"seed": 7, "run_dir": "runs/blobs-sda", "enable_plots": False},
    },
    "patterns-sda": {
        "data": {"name": "patterns", "options": {}},
        "model": {"hidden": [20, 20], "workers": 1},
        "pretrain": {
            "epochs": 15,
            "learning_rate": 0.001,
            "corruption_levels": [0.1, 0.2],
            "batch_size": 1,
        },
        "finetune": {
            "epochs": 200,
            "learning_rate": 0.1,
            "batch_size": 1,
            "patience": 10,
            "patience_increase": 2,
            "improvement_threshold": 0.995,
            "loss": "ce",
        },
        "train": {"seed": 89677, "run_dir": "runs/patterns-sda", "enable_plots": False},
    },
    "mnist-sda": {
        "data": {"name": "mnist", "options": {"validation": 10000}},
        "model": {"hidden": [100, 45, 45], "workers": 4},
        "pretrain": {
            "epochs": 15,
            "learning_rate": 0.001,
            "corruption_levels": [0.1, 0.2, 0.3],
            "batch_size": 1,
        },
        "finetune": {
            "epochs": 1000,
            "learning_rate": 0.1,
            "batch_size": 1,
            "patience": 10,
            "patience_increase": 2,
            "improvement_threshold": 0.995,
            "loss": "ce",
        },
        "train": {"seed": 89677, "run_dir": "runs/mnist-sda", "enable_plots": True},
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None

_PRETRAIN_DEFAULTS: Mapping[str, object] = {
    "epochs": 15,
    "learning_rate": 0.001,
    "corruption_levels": [0.1, 0.2, 0.3],
    "batch_size": 1,
}
_FINETUNE_DEFAULTS: Mapping[str, object] = {
    "epochs": 1000,
    "learning_rate": 0.1,
    "batch_size": 1,
    "patience": 10,
    "patience_increase": 2,
    "improvement_threshold": 0.995,
    "loss": "ce",
    "metrics": ["error_rate", "loss"],
}


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                _check_sections(data, file.name)
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def _check_sections(config: Mapping[str, object], source: str) -> None:
    missing = {"data", "model", "train"} - set(config)
    if missing:
        raise KeyError(f"Preset {source} is missing required sections: {', '.join(sorted(missing))}")


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, Any]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return dict(file_overrides[name])
    if name not in _PRESETS:
        raise KeyError(f"Unknown preset: {name}")
    return deepcopy(dict(_PRESETS[name]))


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""

    merged = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Load the learning set, build the stack, train it and write run artifacts."""

    _check_sections(config, "config")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])
    pretrain_cfg = merge_config(_PRETRAIN_DEFAULTS, config.get("pretrain", {}))
    finetune_cfg = merge_config(_FINETUNE_DEFAULTS, config.get("finetune", {}))
    LOSS_REGISTRY.get(str(finetune_cfg["loss"]))

    seed = int(train_cfg.get("seed", 0))
    options = dict(data_cfg.get("options", {}))
    # Unseeded synthetic sets follow the run seed
    options.setdefault("seed", derive_seed(make_uniform_source(seed)))
    learning_set = registry.get_learning_set(str(data_cfg["name"]), **options)
    subset = data_cfg.get("subset")
    if subset:
        learning_set = learning_set.subset(**subset)

    hidden = [int(h) for h in model_cfg.get("hidden", [])]
    if not hidden:
        raise ValueError("model.hidden must list at least one hidden layer width")
    workers = int(model_cfg.get("workers", 1))
    run_dir = _resolve_run_dir(train_cfg, learning_set.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    network = StackedDenoisingAutoEncoder(
        make_uniform_source(seed), learning_set.feature_count, workers=workers
    )
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    try:
        for neurons in hidden:
            network.add_hidden_layer(neurons)
        dims = [learning_set.feature_count, *hidden, learning_set.class_count]
        _print_startup_summary(
            learning_set=learning_set.name,
            splits=learning_set.splits,
            dims=dims,
            corruption=pretrain_cfg["corruption_levels"],
            loss=str(finetune_cfg["loss"]),
            workers=workers,
            param_count=sum(dims[i] * dims[i + 1] + dims[i + 1] for i in range(len(dims) - 1)),
        )

        metrics_path = run_dir / "metrics.jsonl"
        split_loggers: Dict[str, List[object]] = {}
        for index, split in enumerate(SPLITS):
            csv_path = run_dir / f"metrics_{split}.csv"
            csv_path.unlink(missing_ok=True)
            split_loggers[split] = [
                JsonlSink(metrics_path, split=split, seed=seed, truncate=index == 0),
                CsvSink(csv_path, split=split),
                plots.logger(split),
            ]

        trainer = Trainer(network)
        started = time.perf_counter()
        costs = trainer.pretrain(
            learning_set.training,
            epochs=int(pretrain_cfg["epochs"]),
            learning_rate=float(pretrain_cfg["learning_rate"]),
            corruption_levels=[float(c) for c in pretrain_cfg["corruption_levels"]],
            batch_size=int(pretrain_cfg["batch_size"]),
            validation=learning_set.validation,
            split_loggers=split_loggers,
        )
        logger.info("The pretraining code ran for %.2fs", time.perf_counter() - started)

        network.set_output_layer(learning_set.class_count)
        started = time.perf_counter()
        result = trainer.fine_tune(
            learning_set,
            epochs=int(finetune_cfg["epochs"]),
            learning_rate=float(finetune_cfg["learning_rate"]),
            batch_size=int(finetune_cfg["batch_size"]),
            patience=int(finetune_cfg["patience"]),
            patience_increase=float(finetune_cfg["patience_increase"]),
            improvement_threshold=float(finetune_cfg["improvement_threshold"]),
            loss=str(finetune_cfg["loss"]),
            metric_names=list(finetune_cfg["metrics"]),
            split_loggers=split_loggers,
        )
        logger.info("The training code ran for %.2fs", time.perf_counter() - started)
        layer_sizes = network.layer_sizes
    finally:
        try:
            plots.close()
        finally:
            network.close()

    (run_dir / "metrics_test.json").write_text(
        json.dumps(
            {
                "best_validation_error": result.best_validation_error,
                "test_error": result.test_error,
                "best_epoch": result.best_epoch,
                "epochs": result.epochs,
            },
            indent=2,
        )
    )
    safe_config = json.loads(json.dumps(config))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        learning_set_provenance=learning_set.provenance,
        layer_sizes=layer_sizes,
    )
    summary_path = write_summary(
        metrics_path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        epochs=result.epochs,
        metrics_path=str(metrics_path),
        manifest_path=manifest,
        summary_path=summary_path,
        best_validation_error=result.best_validation_error,
        test_error=result.test_error,
        pretrain_costs=costs,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], learning_set: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / learning_set


def _print_startup_summary(
    *,
    learning_set: str,
    splits: Mapping[str, int],
    dims: Sequence[int],
    corruption: Sequence[float],
    loss: str,
    workers: int,
    param_count: int,
) -> None:
    print("=== sdanets run ===")
    print(f"Learning set  : {learning_set} {dict(splits)}")
    print(f"Layer sizes   : {list(dims)}")
    print(f"Corruption    : {list(corruption)}")
    print(f"Loss          : {loss}")
    print(f"Row workers   : {workers}")
    print(f"Parameters    : {param_count}")
    print("===================")


__all__ = ["load_preset", "merge_config", "presets", "run_pipeline"]
