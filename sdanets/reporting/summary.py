"""Deterministic run summarisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import numpy as np

_SKIPPED = {"epoch", "seed", "layer"}


def compute_auc(points: Sequence[float]) -> float:
    """Return the trapezoidal area under ``points`` along an implicit epoch axis."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum((y[1:] + y[:-1]) / 2.0))


def _extract_numeric(records: Iterable[Mapping[str, object]]) -> Mapping[str, list[float]]:
    metrics: dict[str, list[float]] = {}
    for record in records:
        split = record.get("split", "")
        for key, value in record.items():
            if key in _SKIPPED or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                name = f"{split}/{key}" if split else key
                metrics.setdefault(name, []).append(float(value))
    return metrics


def build_summary(records: list[Mapping[str, object]], tail: int) -> Mapping[str, object]:
    summary_metrics: dict[str, Mapping[str, float]] = {}
    for name, values in sorted(_extract_numeric(records).items()):
        arr = np.asarray(values, dtype=np.float64)
        tail_arr = arr[-min(tail, arr.size):]
        summary_metrics[name] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "tail_auc": compute_auc(tail_arr.tolist()),
        }
    return {"version": 1, "records": len(records), "tail": tail, "metrics": summary_metrics}


def write_summary(
    metrics_jsonl: str | Path, out_summary_json: str | Path, *, tail: int = 32
) -> str:
    """Summarise every ``split/metric`` series of ``metrics_jsonl``."""

    metrics_path = Path(metrics_jsonl)
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    records: list[Mapping[str, object]] = []
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))

    out_path.write_text(json.dumps(build_summary(records, tail), sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "compute_auc", "write_summary"]
