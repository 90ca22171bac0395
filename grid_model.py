from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np


class OutOfBoundsError(IndexError):
    """Cell coordinates outside [0,width) x [0,height)."""


@dataclass(frozen=True)
class Cell:
    x: int
    y: int
    active: bool
    label: int


class Grid:
    """Fixed-size row-major grid of cells.

    State lives in two arrays shaped (height, width) and indexed [y, x]:
    ``active`` (bool) and ``labels`` (uint32, 0 = unlabeled). Dimensions are
    fixed at construction.
    """

    def __init__(self, width: int, height: int):
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"grid dimensions must be >= 1, got {width}x{height}")
        self._width = width
        self._height = height
        self.active = np.zeros((height, width), dtype=bool)
        self.labels = np.zeros((height, width), dtype=np.uint32)

    @classmethod
    def from_mask(cls, mask) -> "Grid":
        mask = np.asarray(mask, dtype=bool)
        if mask.ndim != 2:
            raise ValueError(f"mask must be 2-D, got shape {mask.shape}")
        grid = cls(mask.shape[1], mask.shape[0])
        grid.active[...] = mask
        return grid

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def shape(self) -> tuple[int, int]:
        return self._height, self._width

    def _check(self, x: int, y: int) -> tuple[int, int]:
        xi = int(x)
        yi = int(y)
        if xi != x or yi != y:
            raise OutOfBoundsError(f"cell ({x}, {y}) is not on integer coordinates")
        x, y = xi, yi
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBoundsError(
                f"cell ({x}, {y}) outside [0,{self._width})x[0,{self._height})"
            )
        return x, y

    def set_active(self, x: int, y: int, active: bool = True) -> None:
        """Flip a cell and zero its label. Does not relabel the grid."""
        x, y = self._check(x, y)
        self.active[y, x] = bool(active)
        self.labels[y, x] = 0

    def cell(self, x: int, y: int) -> Cell:
        x, y = self._check(x, y)
        return Cell(x, y, bool(self.active[y, x]), int(self.labels[y, x]))

    def cells(self) -> Iterator[Cell]:
        for y in range(self._height):
            for x in range(self._width):
                yield Cell(x, y, bool(self.active[y, x]), int(self.labels[y, x]))

    def active_count(self) -> int:
        return int(np.count_nonzero(self.active))

    def clear(self) -> None:
        self.active[...] = False
        self.labels[...] = 0

    def snapshot(self) -> np.ndarray:
        """Read-only copy of the active mask, safe to hand to another thread."""
        snap = self.active.copy()
        snap.flags.writeable = False
        return snap

    def apply_labels(self, labels) -> None:
        labels = np.array(labels, dtype=np.uint32, copy=True)
        if labels.shape != self.shape:
            raise ValueError(f"label shape {labels.shape} does not match grid {self.shape}")
        # single reference swap, never a partial update of the live array
        self.labels = labels


def create_grid(width: int, height: int) -> Grid:
    return Grid(width, height)
