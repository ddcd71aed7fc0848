"""Data-parallel fan-out over the output rows of a layer."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

RowTask = Callable[[slice], None]


class RowPool:
    """Run a row task over disjoint, contiguous slices of ``range(n_rows)``.

    Each slice only reads shared inputs and writes its own rows, so the slices
    can run concurrently; NumPy releases the GIL inside the kernels. With a
    single worker the task runs inline on the whole range.
    """

    def __init__(self, workers: int = 1, *, min_rows: int = 64) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.workers = int(workers)
        self.min_rows = max(1, int(min_rows))
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="sdanets-rows"
            )

    def slices(self, n_rows: int) -> List[slice]:
        parts = min(self.workers, max(1, n_rows // self.min_rows))
        bounds = [n_rows * k // parts for k in range(parts + 1)]
        return [slice(lo, hi) for lo, hi in zip(bounds[:-1], bounds[1:]) if hi > lo]

    def map_rows(self, task: RowTask, n_rows: int) -> None:
        """Run ``task`` over every row slice and wait for all of them."""

        slices = self.slices(n_rows)
        if self._executor is None or len(slices) <= 1:
            for rows in slices:
                task(rows)
            return
        futures = [self._executor.submit(task, rows) for rows in slices]
        for future in futures:
            future.result()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "RowPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


SERIAL = RowPool(1)

__all__ = ["RowPool", "SERIAL"]
