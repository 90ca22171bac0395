from __future__ import annotations

import numpy as np
from numba import njit

from union_find import UnionFind, uf_find, uf_union


CONNECTIVITY_MODES = (4, 8)


class InvalidConnectivityError(ValueError):
    """Connectivity mode other than 4 or 8."""


def neighbor_offsets(connectivity: int) -> np.ndarray:
    """Return half-neighborhood offsets for the requested connectivity.

    Offsets are shaped (M,2) with entries (dx,dy) relative to the current cell.
    Scanning order is x fastest, then y, so only the row above and the cell to
    the left have been visited when a cell is reached.
    """
    if connectivity == 4:
        offs = [(0, -1), (-1, 0)]
    elif connectivity == 8:
        offs = [
            # previous row: northeast, north, northwest
            (1, -1), (0, -1), (-1, -1),
            # same row: west
            (-1, 0),
        ]
    else:
        raise InvalidConnectivityError(f"connectivity must be 4 or 8, got {connectivity!r}")
    return np.asarray(offs, dtype=np.int64)


def assign_labels(grid, offsets: np.ndarray, uf: UnionFind) -> int:
    """First pass: give every active cell a provisional label.

    A cell with no labeled causal neighbour opens a new class; otherwise it
    takes the smallest neighbour label and every other neighbour label is
    merged into it. Inactive cells end up with 0. Returns the number of
    provisional labels allocated.
    """
    active = grid.active
    labels = grid.labels
    labels[...] = 0
    height, width = active.shape
    offs = [(int(dx), int(dy)) for dx, dy in np.asarray(offsets).reshape(-1, 2)]

    next_label = 1
    # flatnonzero on a C-ordered (y, x) array walks cells in row-major order
    for idx in np.flatnonzero(active.ravel()):
        y, x = divmod(int(idx), width)
        seen = []
        for dx, dy in offs:
            nx = x + dx
            ny = y + dy
            if nx < 0 or ny < 0 or nx >= width or ny >= height:
                continue
            if active[ny, nx]:
                nb = int(labels[ny, nx])
                if nb != 0:
                    seen.append(nb)
        if not seen:
            uf.make_set(next_label)
            labels[y, x] = next_label
            next_label += 1
            continue
        lbl = min(seen)
        labels[y, x] = lbl
        for nb in seen:
            if nb != lbl:
                uf.union(lbl, nb)
    return next_label - 1


def resolve_labels(grid, uf: UnionFind) -> int:
    """Second pass: replace provisional labels by their roots. Return the area count."""
    labels = grid.labels
    m = grid.active & (labels != 0)
    prov = labels[m]
    if prov.size == 0:
        return 0
    u = np.unique(prov)
    lut = np.zeros(int(u.max()) + 1, dtype=np.uint32)
    for l in u:
        lut[l] = uf.find(int(l))
    labels[m] = lut[prov]
    return int(np.unique(lut[u]).size)


@njit
def _ccl_2d(mask: np.ndarray, neigh: np.ndarray):
    """Label a boolean (height, width) mask using two-pass union-find CCL.

    Same assignment and merge rules as assign_labels/resolve_labels, so the
    output is identical. Returns (labels uint32, number of areas).
    """
    nj, ni = mask.shape
    labels = np.zeros((nj, ni), dtype=np.uint32)
    parent = np.arange(nj * ni + 1, dtype=np.int64)
    next_label = 1

    # First pass: assign and union
    for j in range(nj):
        for i in range(ni):
            if not mask[j, i]:
                continue
            lbl = 0
            for t in range(neigh.shape[0]):
                di = i + neigh[t, 0]
                dj = j + neigh[t, 1]
                if di < 0 or dj < 0 or di >= ni or dj >= nj:
                    continue
                nb = labels[dj, di]
                if nb != 0:
                    if lbl == 0 or nb < lbl:
                        lbl = nb
            if lbl == 0:
                lbl = next_label
                next_label += 1
            labels[j, i] = lbl

            for t in range(neigh.shape[0]):
                di = i + neigh[t, 0]
                dj = j + neigh[t, 1]
                if di < 0 or dj < 0 or di >= ni or dj >= nj:
                    continue
                nb = labels[dj, di]
                if nb != 0 and nb != lbl:
                    uf_union(parent, lbl, nb)

    # Second pass: compress to representatives
    for j in range(nj):
        for i in range(ni):
            l = labels[j, i]
            if l != 0:
                labels[j, i] = uf_find(parent, l)

    n_areas = 0
    for l in range(1, next_label):
        if uf_find(parent, l) == l:
            n_areas += 1
    return labels, n_areas


def label_2d(mask: np.ndarray, connectivity: int = 8, offsets: np.ndarray | None = None):
    """Label a 2-D boolean mask in one compiled call.

    - mask: boolean array shaped (height, width).
    - connectivity: 4 or 8; ignored when ``offsets`` is given.
    - offsets: explicit (M,2) causal offsets as returned by neighbor_offsets.

    Returns (labels, area_count) with labels uint32 of the mask's shape.
    """
    mask = np.ascontiguousarray(mask, dtype=np.bool_)
    if mask.ndim != 2:
        raise ValueError(f"mask must be 2-D, got shape {mask.shape}")
    if offsets is None:
        neigh = neighbor_offsets(connectivity)
    else:
        neigh = np.ascontiguousarray(offsets, dtype=np.int64).reshape(-1, 2)
    labels, n_areas = _ccl_2d(mask, neigh)
    return labels, int(n_areas)
