"""Group perfect dual-mesh cubes of one level into per-macrocell grids (bricks)."""

from __future__ import annotations

import re
import struct
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Sequence, TextIO

from exastitch.sahbuilder import Box3

MACRO_CELL_WIDTH = 8
DEFAULT_OUT_FILE_NAME = "out.grids"

# vertex order inside a cube as written by the dual-mesh generator
VTK_ORDER = (0, 1, 3, 2, 4, 5, 7, 6)

_CUBE = struct.Struct("<3fi8i")
_INT_PREFIX = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")

Vec3i = tuple[int, int, int]


def _tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


@dataclass(frozen=True)
class Cube:
    """A perfect dual cube: its lower corner, level and eight scalar ids."""

    lower: tuple[float, float, float]
    level: int
    scalar_ids: tuple[int, ...]

    SIZE = _CUBE.size

    def pack(self) -> bytes:
        if len(self.scalar_ids) != 8:
            raise ValueError("a cube has exactly eight scalar ids")
        return _CUBE.pack(*self.lower, self.level, *self.scalar_ids)

    @classmethod
    def unpack(cls, data: bytes) -> "Cube":
        x, y, z, level, *ids = _CUBE.unpack(data)
        return cls((x, y, z), level, tuple(ids))


def cell_id(cube: Cube) -> Vec3i:
    """Integer cell coordinates of ``cube`` in its level's cell space."""
    width = 1 << cube.level
    result = []
    for value in cube.lower:
        cid = int(value)
        if value < 0.0:
            cid -= width - 1
        result.append(_tdiv(cid, width))
    return tuple(result)


def cell_bounds(cube: Cube) -> tuple[Vec3i, Vec3i]:
    """Lower and upper integer bounds of the cell that ``cube`` occupies."""
    cell = cell_id(cube)
    return cell, tuple(c + 1 for c in cell)


def mc_id(cube: Cube, macro_cell_width: int = MACRO_CELL_WIDTH) -> Vec3i:
    """Macrocell coordinates of ``cube``."""
    result = []
    for cid in cell_id(cube):
        if cid < 0:
            cid -= macro_cell_width - 1
        result.append(_tdiv(cid, macro_cell_width))
    return tuple(result)


@dataclass
class Brick:
    """A dense grid of cubes on one level holding the scalar id of each vertex."""

    lower: Vec3i = (0, 0, 0)
    level: int = 0
    num_cubes: Vec3i = (0, 0, 0)
    scalar_ids: list[int] = field(default_factory=list)

    def create(self, lower: Sequence[int], upper: Sequence[int]) -> None:
        """Size the brick to cover cells ``lower`` to ``upper``, all vertices unset."""
        self.lower = tuple(lower)
        self.num_cubes = tuple(hi - lo for lo, hi in zip(lower, upper))
        nx, ny, nz = self.num_cubes
        self.scalar_ids = [-1] * ((nx + 1) * (ny + 1) * (nz + 1))

    def _index(self, local_vertex: Sequence[int]) -> int:
        x, y, z = local_vertex
        nx, ny, _ = self.num_cubes
        return x + (nx + 1) * (y + (ny + 1) * z)

    def write_scalar(self, local_vertex: Sequence[int], scalar_id: int) -> None:
        """Store ``scalar_id`` at a vertex; a conflicting earlier value is an error."""
        idx = self._index(local_vertex)
        if idx < 0 or idx >= len(self.scalar_ids):
            raise ValueError(
                f"invalid local vertex index {idx} for vertex {tuple(local_vertex)}"
            )
        current = self.scalar_ids[idx]
        if current != -1 and current != scalar_id:
            raise ValueError(
                f"invalid local write: vertex holds {current}, got {scalar_id}"
            )
        self.scalar_ids[idx] = scalar_id

    def write_cube(self, cube: Cube) -> None:
        """Store the eight scalar ids of ``cube`` at its vertices."""
        base = tuple(c - lo for c, lo in zip(cell_id(cube), self.lower))
        for iz in range(2):
            for iy in range(2):
                for ix in range(2):
                    vertex = (base[0] + ix, base[1] + iy, base[2] + iz)
                    self.write_scalar(vertex, cube.scalar_ids[VTK_ORDER[4 * iz + 2 * iy + ix]])


def make_bricks_for_level(level: int, cubes: Sequence[Cube]) -> dict[Vec3i, Brick]:
    """One brick per macrocell that holds cubes, ordered by macrocell."""
    bounds: dict[Vec3i, tuple[list[int], list[int]]] = {}
    for cube in cubes:
        lo, hi = cell_bounds(cube)
        key = mc_id(cube)
        if key in bounds:
            cur_lo, cur_hi = bounds[key]
            bounds[key] = (
                [min(a, b) for a, b in zip(cur_lo, lo)],
                [max(a, b) for a, b in zip(cur_hi, hi)],
            )
        else:
            bounds[key] = (list(lo), list(hi))

    bricks: dict[Vec3i, Brick] = {}
    for key in sorted(bounds):
        brick = Brick(level=level)
        brick.create(*bounds[key])
        bricks[key] = brick

    for cube in cubes:
        bricks[mc_id(cube)].write_cube(cube)
    return bricks


def world_bounds(brick: Brick) -> Box3:
    """World-space box covered by ``brick``."""
    width = 1 << brick.level
    lower = tuple(float(c * width) for c in brick.lower)
    upper = tuple(lo + float(n * width) for lo, n in zip(lower, brick.num_cubes))
    return Box3(lower, upper)


def _fmt(value: float) -> str:
    return f"{value:g}"


def write_quad_obj(out: TextIO, base: Sequence[float], du: Sequence[float],
                   dv: Sequence[float]) -> None:
    """Write one quad as four OBJ vertices and a face."""
    v00 = tuple(base)
    v01 = tuple(b + u for b, u in zip(base, du))
    v11 = tuple(b + u + v for b, u, v in zip(base, du, dv))
    v10 = tuple(b + v for b, v in zip(base, dv))
    for vertex in (v00, v01, v10, v11):
        out.write("v " + " ".join(_fmt(c) for c in vertex) + "\n")
    out.write("f -1 -2 -4 -3\n")


def write_obj(out: TextIO, lower: Sequence[float], upper: Sequence[float]) -> None:
    """Write the six faces of a box as OBJ quads."""
    sx, sy, sz = (hi - lo for lo, hi in zip(lower, upper))
    dx, dy, dz = (sx, 0.0, 0.0), (0.0, sy, 0.0), (0.0, 0.0, sz)

    def neg(v):
        return tuple(-c for c in v)

    write_quad_obj(out, lower, dx, dy)
    write_quad_obj(out, lower, dx, dz)
    write_quad_obj(out, lower, dy, dz)
    write_quad_obj(out, upper, neg(dx), neg(dy))
    write_quad_obj(out, upper, neg(dx), neg(dz))
    write_quad_obj(out, upper, neg(dy), neg(dz))


def write_bin(out: BinaryIO, brick: Brick) -> None:
    """Write lower, level, cube counts and scalar ids of ``brick``."""
    out.write(struct.pack("<3i", *brick.lower))
    out.write(struct.pack("<i", brick.level))
    out.write(struct.pack("<3i", *brick.num_cubes))
    out.write(struct.pack(f"<{len(brick.scalar_ids)}i", *brick.scalar_ids))


def read_cubes(path) -> list[Cube]:
    """Read all complete cubes stored in a cubes file."""
    data = Path(path).read_bytes()
    usable = len(data) - len(data) % Cube.SIZE
    return [Cube.unpack(data[i:i + Cube.SIZE]) for i in range(0, usable, Cube.SIZE)]


def level_from_file_name(file_name) -> int:
    """Level encoded in a ``<name>_<level>.cubes`` file name."""
    name = str(file_name)
    pos = name.rfind("_")
    if pos < 0:
        raise ValueError(f"'{name}' is not a cubes file!?")
    match = _INT_PREFIX.match(name, pos + 1)
    if match is None:
        raise ValueError(f"'{name}' is not a cubes file!?")
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def make_grids_for(file_name, out_path, append: bool = False) -> dict[Vec3i, Brick]:
    """Build the bricks of one cubes file and write them to ``out_path``."""
    print("=" * 66)
    print(f"making grids for {file_name}")
    print("=" * 66)
    level = level_from_file_name(file_name)
    bricks = make_bricks_for_level(level, read_cubes(file_name))

    num_cubes = sum(b.num_cubes[0] * b.num_cubes[1] * b.num_cubes[2] for b in bricks.values())
    num_scalars = sum(len(b.scalar_ids) for b in bricks.values())
    print(f"numBricksGenerated={len(bricks)}")
    print(f"numCubesInBricks={num_cubes}")
    print(f"numScalarsInBricks={num_scalars}")

    with open(out_path, "ab" if append else "wb") as out:
        for brick in bricks.values():
            write_bin(out, brick)
    return bricks


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    out_path = Path(tempfile.gettempdir()) / DEFAULT_OUT_FILE_NAME
    total_bricks = total_cubes = total_scalars = 0
    for index, file_name in enumerate(args):
        bricks = make_grids_for(file_name, out_path, append=index > 0)
        total_bricks += len(bricks)
        total_cubes += sum(
            b.num_cubes[0] * b.num_cubes[1] * b.num_cubes[2] for b in bricks.values()
        )
        total_scalars += sum(len(b.scalar_ids) for b in bricks.values())
        print(f"totalBricksGenerated={total_bricks}")
        print(f"totalCubesInBricks={total_cubes}")
        print(f"totalScalarsInBricks={total_scalars}")
    return 0


if __name__ == "__main__":
    sys.exit(main())