import json
from pathlib import Path

import pytest

from cli.main import main


def _write_override(path: Path) -> Path:
    path.write_text(
        json.dumps(
            {
                "data": {"options": {"n_samples": 60}},
                "pretrain": {"epochs": 1},
                "finetune": {"epochs": 2},
            }
        )
    )
    return path


def test_cli_blobs_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    override = _write_override(tmp_path / "override.json")
    main(["--preset", "blobs-sda", "--config", str(override), "--seed", "3"])
    run_dir = Path("runs/blobs-sda")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["epochs"] <= 2
    assert payload["manifest"].endswith("manifest.json")
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["config"]["train"]["seed"] == 3


def test_cli_patterns_from_data_dir(tmp_path, capsys):
    data_dir = tmp_path / "pr"
    data_dir.mkdir()
    lines = [
        ",".join([str(d)] + ["1" if (d + k) % 3 == 0 else "0" for k in range(35)])
        for d in range(10)
    ]
    (data_dir / "pattern2learn.dat").write_text("\n".join(lines) + "\n")
    (data_dir / "pattern2recog.dat").write_text("\n".join(lines[:4]) + "\n")
    override = tmp_path / "override.yaml"
    override.write_text("pretrain:\n  epochs: 1\nfinetune:\n  epochs: 2\n")
    dump = tmp_path / "resolved.json"

    main(
        [
            "--preset",
            "patterns-sda",
            "--config",
            str(override),
            "--data-dir",
            str(data_dir),
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["data"]["options"]["data_dir"] == str(data_dir)
    assert resolved["pretrain"]["epochs"] == 1
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert 0.0 <= payload["test_error"] <= 1.0


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    assert "blobs-sda" in capsys.readouterr().out.split()
