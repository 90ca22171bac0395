from __future__ import annotations

import numpy as np
from numba import njit


class UnregisteredLabelError(AssertionError):
    """Raised when find/union sees a label that was never passed to make_set."""


@njit(inline='always')
def uf_find(parent, x):
    # locate the root, then point every node on the path straight at it
    root = x
    while parent[root] != root:
        root = parent[root]
    while parent[x] != root:
        nxt = parent[x]
        parent[x] = root
        x = nxt
    return root


@njit(inline='always')
def uf_union(parent, a, b):
    ra = uf_find(parent, a)
    rb = uf_find(parent, b)
    if ra == rb:
        return ra
    # the smaller root always survives so a class is named by its minimum label
    if rb < ra:
        ra, rb = rb, ra
    parent[rb] = ra
    return ra


class UnionFind:
    """Label-indexed disjoint-set over dense positive labels.

    parent[l] == 0 marks label l as unregistered; label 0 itself is reserved
    for background and can never be registered. Storage grows on demand, but
    callers that know an upper bound (e.g. the active cell count) should pass
    it as ``capacity`` to avoid reallocations during a scan.
    """

    __slots__ = ("parent",)

    def __init__(self, capacity: int = 16):
        self.parent = np.zeros(max(int(capacity), 1) + 1, dtype=np.int64)

    def __len__(self) -> int:
        return int(np.count_nonzero(self.parent))

    def __contains__(self, label) -> bool:
        label = int(label)
        return 0 < label < self.parent.size and self.parent[label] != 0

    def _require(self, label) -> int:
        label = int(label)
        if label not in self:
            raise UnregisteredLabelError(f"label {label} is not registered")
        return label

    def make_set(self, label) -> None:
        label = int(label)
        if label <= 0:
            raise ValueError("labels must be positive; 0 is reserved for background")
        if label >= self.parent.size:
            grown = np.zeros(max(label + 1, 2 * self.parent.size), dtype=np.int64)
            grown[:self.parent.size] = self.parent
            self.parent = grown
        if self.parent[label] != 0:
            raise ValueError(f"label {label} is already registered")
        self.parent[label] = label

    def find(self, label) -> int:
        return int(uf_find(self.parent, self._require(label)))

    def union(self, a, b) -> int:
        """Merge the classes of ``a`` and ``b`` and return the surviving root.

        The root of ``a``'s class is kept unless ``b``'s root is numerically
        smaller, in which case that one is kept instead.
        """
        return int(uf_union(self.parent, self._require(a), self._require(b)))

    def number_of_classes(self) -> int:
        registered = np.flatnonzero(self.parent)
        return len({int(uf_find(self.parent, l)) for l in registered})
