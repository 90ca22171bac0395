from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor

import numpy as np

from local_label import label_2d


class LabelWorker:
    """Runs the compiled labeling kernel off the caller's thread.

    Every submission works on its own copy of the mask, so the live grid can
    never be observed mid-scan.
    """

    def __init__(self, max_workers: int = 1):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ccl")

    def submit(self, snapshot: np.ndarray, offsets: np.ndarray) -> Future:
        """Queue a labeling of ``snapshot``; the future yields (labels, area_count)."""
        mask = np.array(snapshot, dtype=bool, copy=True)
        if mask.ndim != 2:
            raise ValueError(f"snapshot must be 2-D, got shape {mask.shape}")
        mask.flags.writeable = False
        neigh = np.array(offsets, dtype=np.int64, copy=True).reshape(-1, 2)
        return self._executor.submit(label_2d, mask, offsets=neigh)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "LabelWorker":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown(wait=True)
