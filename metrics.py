from __future__ import annotations

import numpy as np


def label_ids(labels: np.ndarray) -> np.ndarray:
    """Sorted distinct nonzero labels. Canonical labels are not compacted, so gaps are normal."""
    u = np.unique(labels)
    return u[u != 0].astype(np.uint32)


def _ensure_ids(labels: np.ndarray, ids: np.ndarray | None) -> np.ndarray:
    if ids is None:
        ids = label_ids(labels)
    return ids


def num_cells(labels: np.ndarray, ids: np.ndarray | None = None) -> np.ndarray:
    ids = _ensure_ids(labels, ids)
    if ids.size == 0:
        return np.zeros((0,), dtype=np.int64)
    lab = labels.ravel()
    cnt = np.bincount(lab, minlength=int(ids.max()) + 1).astype(np.int64)
    return cnt[ids]


def compute_bboxes(labels: np.ndarray, ids: np.ndarray | None = None) -> np.ndarray:
    """Compute per-label bounding boxes [min,max) in x and y.

    Returns int32 array of shape [K,4]: (x_min,x_max,y_min,y_max), rows aligned with ``ids``.
    """
    ids = _ensure_ids(labels, ids)
    K = ids.size
    if K == 0:
        return np.zeros((0, 4), dtype=np.int32)
    height, width = labels.shape
    xmin = np.full(K, width, dtype=np.int64)
    ymin = np.full(K, height, dtype=np.int64)
    xmax = np.zeros(K, dtype=np.int64)
    ymax = np.zeros(K, dtype=np.int64)

    # Along y (rows)
    for y in range(height):
        u = np.unique(labels[y, :])
        u = u[u != 0]
        if u.size == 0:
            continue
        pos = np.searchsorted(ids, u)
        ymin[pos] = np.minimum(ymin[pos], y)
        ymax[pos] = np.maximum(ymax[pos], y + 1)

    # Along x (columns)
    for x in range(width):
        u = np.unique(labels[:, x])
        u = u[u != 0]
        if u.size == 0:
            continue
        pos = np.searchsorted(ids, u)
        xmin[pos] = np.minimum(xmin[pos], x)
        xmax[pos] = np.maximum(xmax[pos], x + 1)

    return np.stack([xmin, xmax, ymin, ymax], axis=1).astype(np.int32)
