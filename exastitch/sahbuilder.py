"""Cost-driven kd-tree partitioning of a volume into majorant regions.

The volume handed to the builder provides ``bounds`` (a :class:`Box3`) and
``min_max(box, color_map)`` returning a ``(lower, upper)`` pair of the
classified values inside ``box``. Nodes are split greedily in order of their
cost; the upper value of each half weights its surface-area/diagonal cost.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

NUM_BINS = 8
FLT_MAX = 3.4028234663852886e38

Vec3 = tuple[float, float, float]


@dataclass(frozen=True)
class Box3:
    """An axis-aligned box given by its lower and upper corners."""

    lower: Vec3
    upper: Vec3

    def size(self) -> Vec3:
        return (
            self.upper[0] - self.lower[0],
            self.upper[1] - self.lower[1],
            self.upper[2] - self.lower[2],
        )

    def _with(self, axis: int, lower: Optional[float] = None,
              upper: Optional[float] = None) -> "Box3":
        lo = list(self.lower)
        hi = list(self.upper)
        if lower is not None:
            lo[axis] = lower
        if upper is not None:
            hi[axis] = upper
        return Box3(tuple(lo), tuple(hi))

    def __str__(self) -> str:
        return f"[{self.lower}:{self.upper}]"


@dataclass
class Node:
    """A kd-tree leaf: its domain and the cost used to pick the next split."""

    domain: Box3
    priority: float

    def __lt__(self, other: "Node") -> bool:
        return self.priority < other.priority


def surface_area(box: Box3) -> float:
    """Surface area of ``box``."""
    sx, sy, sz = box.size()
    return (sx * sy + sy * sz + sz * sx) * 2.0


def diag(box: Box3) -> float:
    """Length of the diagonal of ``box``."""
    sx, sy, sz = box.size()
    return math.sqrt(sx * sx + sy * sy + sz * sz)


@dataclass
class _Costs:
    left: float
    right: float
    total: float


class KDTree:
    """Greedy kd-tree builder; ``final_nodes`` holds a leaf set per requested count."""

    def __init__(self, volume, color_map: Optional[Sequence[float]],
                 num_leaves_desired: Sequence[int]) -> None:
        self.rgba_cm = color_map
        self._heap: list[tuple[float, int, Node]] = []
        self._counter = itertools.count()
        self.final_nodes: list[list[Node]] = []
        self._push(Node(volume.bounds, FLT_MAX))
        self.build(volume, sorted(num_leaves_desired))

    @property
    def nodes(self) -> list[Node]:
        """Current leaves, highest cost first."""
        return [entry[2] for entry in sorted(self._heap)]

    def _push(self, node: Node) -> None:
        heapq.heappush(self._heap, (-node.priority, next(self._counter), node))

    def _pop(self) -> Node:
        return heapq.heappop(self._heap)[2]

    def build(self, volume, num_leaves_desired: Sequence[int]) -> None:
        """Split leaves until the largest requested leaf count is reached."""
        desired = sorted(num_leaves_desired)
        if not desired:
            raise ValueError("no leaf counts requested")
        target = desired[-1]

        while len(self._heap) < target:
            if len(self._heap) in desired:
                self.final_nodes.append(self.nodes)

            logger.debug("Leaf nodes generated so far: %d, picking another node to split...",
                         len(self._heap))
            node = self._pop()
            box = node.domain
            logger.debug("Picking node: %s with costs %s", box, node.priority)

            best_axis = -1
            best_plane = 0.0
            best = _Costs(FLT_MAX, FLT_MAX, FLT_MAX)
            for axis in range(3):
                begin = box.lower[axis]
                end = box.upper[axis]
                if begin == end:
                    continue
                step = (end - begin) / NUM_BINS
                for i in range(NUM_BINS - 1):
                    plane = begin + step * (i + 1)
                    left = box._with(axis, lower=begin, upper=plane)
                    right = box._with(axis, lower=plane, upper=end)
                    mu_left = volume.min_max(left, self.rgba_cm)[1]
                    mu_right = volume.min_max(right, self.rgba_cm)[1]
                    cost_left = surface_area(left) * diag(left) * mu_left
                    cost_right = surface_area(right) * diag(right) * mu_right
                    total = cost_left + cost_right
                    logger.debug(
                        "Testing axis %d, plane %s, muL: %s, muR: %s, CL: %s, CR: %s, C: %s",
                        axis, plane, mu_left, mu_right, cost_left, cost_right, total,
                    )
                    if total < best.total:
                        best_axis = axis
                        best_plane = plane
                        best = _Costs(cost_left, cost_right, total)

            if best_axis < 0:
                raise ValueError(f"node {box} cannot be split")

            logger.debug("%s, split at: (%d,%s) SAH costs(L): %s, SAH costs(R): %s (sum: %s)",
                         box, best_axis, best_plane, best.left, best.right, best.total)

            self._push(Node(box._with(best_axis, upper=best_plane), best.left))
            self._push(Node(box._with(best_axis, lower=best_plane), best.right))

        self.final_nodes.append(self.nodes)