from __future__ import annotations

import json
from pathlib import Path

import pytest

from sdanets.training import pipelines


def _quick_config(run_dir: Path, **train_overrides) -> dict:
    config = pipelines.load_preset("blobs-sda")
    config["data"]["options"].update({"n_samples": 90})
    config["pretrain"].update({"epochs": 2})
    config["finetune"].update({"epochs": 4})
    config["train"].update({"run_dir": str(run_dir), **train_overrides})
    return config


def test_presets_are_copies():
    names = set(pipelines.presets())
    assert {"blobs-sda", "patterns-sda", "mnist-sda"} <= names
    preset = pipelines.load_preset("mnist-sda")
    assert preset["pretrain"]["corruption_levels"] == [0.1, 0.2, 0.3]
    assert preset["finetune"]["improvement_threshold"] == 0.995
    preset["model"]["hidden"].append(7)
    assert pipelines.load_preset("mnist-sda")["model"]["hidden"] == [100, 45, 45]
    with pytest.raises(KeyError):
        pipelines.load_preset("missing")


def test_merge_config_is_deep():
    base = {"train": {"seed": 1, "run_dir": "a"}, "model": {"hidden": [4]}}
    merged = pipelines.merge_config(base, {"train": {"seed": 2}, "model": {"hidden": [8, 4]}})
    assert merged == {"train": {"seed": 2, "run_dir": "a"}, "model": {"hidden": [8, 4]}}
    assert base["train"]["seed"] == 1


def test_pipeline_writes_artifacts(tmp_path, capsys):
    result = pipelines.run_pipeline(_quick_config(tmp_path / "run", enable_plots=True))
    out = capsys.readouterr().out
    assert "=== sdanets run ===" in out
    assert "[16, 12, 8, 3]" in out

    run_dir = tmp_path / "run"
    assert Path(result.metrics_path) == run_dir / "metrics.jsonl"
    for name in ("manifest.json", "summary.json", "config.json", "metrics_test.json"):
        assert (run_dir / name).exists()
    for split in ("pretrain", "train", "val", "test"):
        assert (run_dir / f"metrics_{split}.csv").exists()
    assert (run_dir / "pretrain_cost.png").exists()
    assert (run_dir / "fine_tune.png").exists()

    assert 1 <= result.epochs <= 4
    assert 0.0 <= result.best_validation_error <= 1.0
    assert [len(costs) for costs in result.pretrain_costs] == [2, 2]

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    splits = {record["split"] for record in records}
    assert {"pretrain", "train", "val", "test"} <= splits
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["layer_sizes"] == [16, 12, 8, 3]
    assert manifest["learning_set"]["type"] == "synthetic"
    summary = json.loads((run_dir / "summary.json").read_text())
    assert "val/error_rate" in summary["metrics"]
    assert "pretrain/cost" in summary["metrics"]


def test_summary_outputs_are_deterministic(tmp_path):
    first = pipelines.run_pipeline(_quick_config(tmp_path / "run_a"))
    second = pipelines.run_pipeline(_quick_config(tmp_path / "run_b"))
    assert Path(first.metrics_path).read_bytes() == Path(second.metrics_path).read_bytes()
    assert Path(first.summary_path).read_bytes() == Path(second.summary_path).read_bytes()
    assert first.test_error == second.test_error


def test_pipeline_validates_config(tmp_path):
    config = _quick_config(tmp_path / "bad")
    del config["model"]
    with pytest.raises(KeyError):
        pipelines.run_pipeline(config)

    config = _quick_config(tmp_path / "bad")
    config["finetune"]["loss"] = "hinge"
    with pytest.raises(KeyError):
        pipelines.run_pipeline(config)

    config = _quick_config(tmp_path / "bad")
    config["model"]["hidden"] = []
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)


def test_file_presets_override_builtins(tmp_path, monkeypatch):
    preset_dir = tmp_path / "presets"
    preset_dir.mkdir()
    (preset_dir / "tiny.yaml").write_text(
        "data:\n  name: blobs\n  options:\n    n_samples: 30\n"
        "model:\n  hidden: [3]\n"
        "train:\n  seed: 2\n"
    )
    (preset_dir / "notes.txt").write_text("ignored")
    monkeypatch.setattr(pipelines, "_PRESET_DIR", preset_dir)
    monkeypatch.setattr(pipelines, "_FILE_PRESETS_CACHE", None)

    assert "tiny" in pipelines.presets()
    tiny = pipelines.load_preset("tiny")
    assert tiny["model"]["hidden"] == [3]

    (preset_dir / "broken.json").write_text(json.dumps({"data": {}}))
    monkeypatch.setattr(pipelines, "_FILE_PRESETS_CACHE", None)
    with pytest.raises(KeyError, match="missing required sections"):
        pipelines.presets()


def test_plots_are_flushed_when_fine_tuning_fails(tmp_path, monkeypatch):
    def _fail(self, *args, **kwargs):
        raise RuntimeError("fine-tuning diverged")

    monkeypatch.setattr(pipelines.Trainer, "fine_tune", _fail)
    run_dir = tmp_path / "failed"
    with pytest.raises(RuntimeError, match="diverged"):
        pipelines.run_pipeline(_quick_config(run_dir, enable_plots=True))
    assert (run_dir / "pretrain_cost.png").exists()
    assert not (run_dir / "manifest.json").exists()
