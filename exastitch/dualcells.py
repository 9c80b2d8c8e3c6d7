"""AMR cells on power-of-two levels, and lookup of the cell that covers a point."""

from __future__ import annotations

import math
import struct
from bisect import bisect_left
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from exastitch.sahbuilder import Box3

_CELL = struct.Struct("<3ii")

Vec3i = tuple[int, int, int]
Vec3f = tuple[float, float, float]

_EMPTY_BOX = Box3((math.inf, math.inf, math.inf), (-math.inf, -math.inf, -math.inf))


def _u32(value: int) -> int:
    return value & 0xFFFFFFFF


@dataclass(frozen=True)
class LogicalCell:
    """A cell given by its integer position and its level; it is ``2**level`` wide."""

    pos: Vec3i
    level: int

    @property
    def width(self) -> int:
        return 1 << self.level

    def bounds(self) -> Box3:
        """World-space box of the cell."""
        w = self.width
        return Box3(
            tuple(float(p) for p in self.pos),
            tuple(float(p + w) for p in self.pos),
        )

    def neighbor(self, delta: Sequence[int]) -> "LogicalCell":
        """The cell of the same level ``delta`` cell widths away."""
        w = self.width
        return LogicalCell(tuple(p + d * w for p, d in zip(self.pos, delta)), self.level)

    def center(self) -> Vec3f:
        """World-space center of the cell."""
        half = 0.5 * self.width
        return tuple(float(p) + half for p in self.pos)

    @property
    def logical_key(self) -> tuple[int, int, int, int]:
        """Ordering key: the cell's record read as two unsigned 64-bit words."""
        x, y, z = self.pos
        return (_u32(y), _u32(x), _u32(self.level), _u32(z))

    def __lt__(self, other: "LogicalCell") -> bool:
        return self.logical_key < other.logical_key


@dataclass(frozen=True)
class Cell(LogicalCell):
    """A logical cell together with the id of its scalar."""

    scalar_id: int = 0

    @property
    def logical(self) -> LogicalCell:
        return LogicalCell(self.pos, self.level)

    @property
    def sort_key(self) -> tuple[int, int, int, int, int]:
        return (*self.logical_key, self.scalar_id)

    def __lt__(self, other: "Cell") -> bool:
        return self.sort_key < other.sort_key


def lower_on_level(value: float, level: int) -> int:
    """Lower coordinate of the level-``level`` cell that contains ``value``."""
    width = 1 << level
    return int(math.floor(value / width) * width)


@dataclass
class Exa:
    """A set of AMR cells; scalar ids are given in the order cells are added."""

    bounds: Box3 = _EMPTY_BOX
    min_level: int = 100
    max_level: int = 0
    cell_list: list[Cell] = field(default_factory=list)

    def add(self, logical: LogicalCell) -> Cell:
        """Append a cell, giving it the next scalar id."""
        cell = Cell(tuple(logical.pos), logical.level, len(self.cell_list))
        self.cell_list.append(cell)
        self.min_level = min(self.min_level, cell.level)
        self.max_level = max(self.max_level, cell.level)
        box = cell.bounds()
        self.bounds = Box3(
            tuple(min(a, b) for a, b in zip(self.bounds.lower, box.lower)),
            tuple(max(a, b) for a, b in zip(self.bounds.upper, box.upper)),
        )
        return cell

    def __len__(self) -> int:
        return len(self.cell_list)

    def sort(self) -> None:
        """Sort the cells so that :meth:`find` can search them."""
        self.cell_list.sort(key=lambda c: c.sort_key)

    def find(self, where: Sequence[float]) -> Optional[int]:
        """Index of the cell covering ``where``, finest level first, or ``None``.

        The cell list must have been sorted with :meth:`sort`.
        """
        for level in range(self.min_level, self.max_level + 1):
            query = LogicalCell(tuple(lower_on_level(c, level) for c in where), level)
            key = query.logical_key
            idx = bisect_left(self.cell_list, key, key=lambda c: c.logical_key)
            if idx < len(self.cell_list) and self.cell_list[idx].logical_key == key:
                return idx
        return None


def read_cells(path) -> list[LogicalCell]:
    """Read all complete cell records (x, y, z, level as 32-bit ints) from a file."""
    data = Path(path).read_bytes()
    usable = len(data) - len(data) % _CELL.size
    cells = []
    for offset in range(0, usable, _CELL.size):
        x, y, z, level = _CELL.unpack_from(data, offset)
        cells.append(LogicalCell((x, y, z), level))
    return cells