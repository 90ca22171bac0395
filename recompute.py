"""
recompute.py

Full relabeling pipeline and the mutable session built on top of it.

    from recompute import LabelingSession

    s = LabelingSession(width=10, height=10, connectivity=8)
    s.set_cell_active(0, 0)
    res = s.set_cell_active(1, 1)
    res.area_count        # 1 under 8-connectivity
    s.configure_connectivity(4).area_count   # 2

Every call rebuilds labels from nothing: a fresh UnionFind and label counter
are created inside recompute() and dropped when it returns.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

import numpy as np

from grid_model import Grid
from local_label import assign_labels, neighbor_offsets, resolve_labels
from union_find import UnionFind
from worker import LabelWorker


class GridBusyError(RuntimeError):
    """Grid change requested while a background recompute is in flight."""


@dataclass
class LabelResult:
    """Canonically labeled grid plus the number of distinct areas.

    ``labels`` is the grid's own label array, not a copy.
    """

    labels: np.ndarray
    area_count: int
    connectivity: int
    num_provisional: int = 0


def recompute(grid: Grid, connectivity: int = 8) -> LabelResult:
    offsets = neighbor_offsets(connectivity)
    uf = UnionFind(capacity=grid.active_count())
    n_prov = assign_labels(grid, offsets, uf)
    area_count = resolve_labels(grid, uf)
    return LabelResult(grid.labels, area_count, int(connectivity), n_prov)


class LabelingSession:
    """One grid, one connectivity mode, relabeled after every change.

    Synchronous calls finish before they return. recompute_async() hands a
    snapshot to a LabelWorker and merges the result back in one step; until
    that happens every other call raises GridBusyError.
    """

    def __init__(self, width: int, height: int, connectivity: int = 8,
                 worker: Optional[LabelWorker] = None, verbose: bool = False):
        neighbor_offsets(connectivity)
        self.grid = Grid(width, height)
        self.verbose = verbose
        self._connectivity = int(connectivity)
        self._area_count = 0
        self._worker = worker
        self._owns_worker = False
        self._lock = threading.Lock()
        self._pending: Optional[Future] = None

    @classmethod
    def from_mask(cls, mask, connectivity: int = 8, **kwargs) -> "LabelingSession":
        mask = np.asarray(mask, dtype=bool)
        if mask.ndim != 2:
            raise ValueError(f"mask must be 2-D, got shape {mask.shape}")
        session = cls(mask.shape[1], mask.shape[0], connectivity=connectivity, **kwargs)
        session.grid.active[...] = mask
        session.recompute()
        return session

    @property
    def connectivity(self) -> int:
        return self._connectivity

    @property
    def area_count(self) -> int:
        return self._area_count

    @property
    def busy(self) -> bool:
        return self._pending is not None

    def _ensure_idle(self) -> None:
        if self._pending is not None:
            raise GridBusyError("background recompute in flight; grid is read-only until it merges")

    def _recompute_locked(self) -> LabelResult:
        res = recompute(self.grid, self._connectivity)
        self._area_count = res.area_count
        if self.verbose:
            print(f"recompute conn={res.connectivity} areas={res.area_count} provisional={res.num_provisional}")
        return res

    def set_cell_active(self, x: int, y: int, active: bool = True) -> LabelResult:
        with self._lock:
            self._ensure_idle()
            self.grid.set_active(x, y, active)
            return self._recompute_locked()

    def configure_connectivity(self, mode: int) -> LabelResult:
        with self._lock:
            self._ensure_idle()
            # raises before the current mode is touched
            neighbor_offsets(mode)
            self._connectivity = int(mode)
            return self._recompute_locked()

    def recompute(self) -> LabelResult:
        with self._lock:
            self._ensure_idle()
            return self._recompute_locked()

    def clear(self) -> LabelResult:
        with self._lock:
            self._ensure_idle()
            self.grid.clear()
            self._area_count = 0
            return LabelResult(self.grid.labels, 0, self._connectivity)

    def recompute_async(self) -> Future:
        """Relabel a snapshot on the worker; the returned future yields a LabelResult.

        The grid already holds the new labels by the time the future resolves.
        """
        with self._lock:
            self._ensure_idle()
            if self._worker is None:
                self._worker = LabelWorker()
                self._owns_worker = True
            connectivity = self._connectivity
            inner = self._worker.submit(self.grid.snapshot(), neighbor_offsets(connectivity))
            outer: Future = Future()
            outer.set_running_or_notify_cancel()
            self._pending = outer

        def _merge(fut: Future) -> None:
            # runs as a done-callback: any failure must reach the caller's future
            try:
                labels, area_count = fut.result()
                with self._lock:
                    self._pending = None
                    self.grid.apply_labels(labels)
                    self._area_count = int(area_count)
                    res = LabelResult(self.grid.labels, int(area_count), connectivity)
            except Exception as exc:
                with self._lock:
                    self._pending = None
                outer.set_exception(exc)
                return
            if self.verbose:
                print(f"background recompute conn={connectivity} areas={area_count}")
            outer.set_result(res)

        inner.add_done_callback(_merge)
        return outer

    def close(self) -> None:
        if self._owns_worker and self._worker is not None:
            self._worker.shutdown(wait=True)
            self._worker = None
            self._owns_worker = False

    def __enter__(self) -> "LabelingSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
