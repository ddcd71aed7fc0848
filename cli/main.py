"""Command line entry point for sdanets runs."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from sdanets.data import available_learning_sets
from sdanets.training import pipelines


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "best_validation_error": result.best_validation_error,
        "test_error": result.test_error,
    }
    if result.summary_path:
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="blobs-sda",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument(
        "--learning-set",
        choices=sorted(available_learning_sets()),
        help="Override the learning set used by the run",
    )
    parser.add_argument("--data-dir", help="Directory holding learning-set files")
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation and corruption")
    parser.add_argument("--workers", type=int, help="Row workers per layer (1 runs inline)")
    parser.add_argument("--enable-plots", action="store_true", help="Enable plotting adapters")
    parser.add_argument("--run-dir", help="Directory receiving metrics and artifacts")
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-epoch progress")
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        import yaml

        return yaml.safe_load(text) or {}
    return json.loads(text)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = pipelines.load_preset(args.preset)
    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)

    if args.learning_set:
        config["data"] = {"name": args.learning_set, "options": {}}
    if args.data_dir:
        config.setdefault("data", {}).setdefault("options", {})["data_dir"] = args.data_dir
    if args.seed is not None:
        config.setdefault("train", {})["seed"] = int(args.seed)
    if args.workers is not None:
        config.setdefault("model", {})["workers"] = int(args.workers)
    if args.enable_plots:
        config.setdefault("train", {})["enable_plots"] = True
    if args.run_dir:
        config.setdefault("train", {})["run_dir"] = args.run_dir

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
