"""Build the dual mesh of an AMR cell set.

Each group of eight cells that meet at a common corner forms one dual
cell. Where all eight cells share a level the dual cell is a perfect cube
and is collected per level. Otherwise it is a hexahedron, wedge, pyramid or
tetrahedron, depending on which of its vertices coincide.
"""

from __future__ import annotations

import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from itertools import combinations, product
from pathlib import Path
from typing import Optional, Sequence

from exastitch.dualcells import Cell, Exa, read_cells
from exastitch.grids import Cube

logger = logging.getLogger(__name__)

USAGE = "./exa2umesh in.cells -o out.umesh [--boundary-only]"
MAX_VERTEX_INDEX = 0x7FFFFFFF

Vec3f = tuple[float, float, float]

# (iz, iy, ix) of each hexahedron corner in VTK order
_CORNER_ORDER = (
    (0, 0, 0), (0, 0, 1), (0, 1, 1), (0, 1, 0),
    (1, 0, 0), (1, 0, 1), (1, 1, 1), (1, 1, 0),
)

# face that collapsed to a point, base of the resulting pyramid, its top
_PYRAMID_FACES = (
    ((0, 1, 2, 3), (4, 7, 6, 5), 0),
    ((4, 5, 6, 7), (0, 1, 2, 3), 4),
    ((0, 1, 4, 5), (2, 6, 7, 3), 0),
    ((2, 3, 6, 7), (0, 4, 5, 1), 2),
    ((0, 3, 4, 7), (1, 5, 6, 2), 0),
    ((1, 2, 5, 6), (0, 3, 7, 4), 1),
)

# two collapsed edges, then the front and back triangles of the wedge
_WEDGE_CASES = (
    ((0, 1), (4, 5), (3, 2, 0), (7, 6, 4)),
    ((0, 4), (1, 5), (2, 6, 5), (3, 7, 4)),
    ((3, 7), (2, 6), (5, 1, 2), (4, 0, 3)),
    ((2, 3), (6, 7), (1, 0, 3), (5, 4, 7)),
    ((4, 7), (5, 6), (3, 0, 4), (2, 1, 6)),
    ((4, 5), (6, 7), (0, 1, 4), (3, 2, 7)),
    ((0, 1), (3, 2), (5, 4, 0), (6, 7, 3)),
    ((0, 3), (1, 2), (4, 7, 3), (5, 6, 2)),
    ((0, 3), (4, 7), (5, 6, 7), (1, 2, 3)),
    ((0, 4), (3, 7), (1, 5, 4), (2, 6, 7)),
    ((1, 2), (5, 6), (7, 4, 5), (3, 0, 1)),
    ((1, 5), (2, 6), (4, 0, 1), (7, 3, 2)),
)


class DualMeshError(RuntimeError):
    """Raised when the dual-mesh construction meets an impossible configuration."""


@dataclass(frozen=True, order=True)
class Vertex:
    """A dual-mesh vertex; vertices compare and hash by position only."""

    pos: Vec3f
    scalar_id: int = field(default=-1, compare=False)


def is_planar_quad_face(v0: Vertex, v1: Vertex, v2: Vertex, v3: Vertex) -> bool:
    """Whether a (possibly degenerate) dual-grid quad is an axis-aligned planar face.

    This only recognises the shapes dual cells produce; it is not a general
    planarity test.
    """
    for u, v in combinations(range(3), 2):
        v00 = (v0.pos[u], v0.pos[v])
        v01 = (v1.pos[u], v1.pos[v])
        v10 = (v3.pos[u], v3.pos[v])
        v11 = (v2.pos[u], v2.pos[v])
        if (v00 == v01 and v10 == v11) or (v00 == v10 and v01 == v11):
            return True
    return False


class DualMesh:
    """Output of the dual-mesh construction: vertices, cells and perfect cubes."""

    def __init__(self) -> None:
        self.vertices: list[Vec3f] = []
        self.vertex_tag: list[int] = []
        self._vertex_index: dict[Vec3f, int] = {}
        self.tets: list[tuple[int, int, int, int]] = []
        self.pyrs: list[tuple[int, int, int, int, int]] = []
        self.wedges: list[tuple[int, ...]] = []
        self.hexes: list[tuple[int, ...]] = []
        self.cubes_on_level: dict[int, list[Cube]] = {}
        self.counts: Counter[str] = Counter()
        self._next_ping: dict[str, int] = {}

    def summary(self) -> str:
        c = self.counts
        return (
            f"generated {c['tets']} tets, "
            f"{c['pyramids']} pyramids ({c['pyramids_perfect']} perfect, "
            f"{c['pyramids_twisted']} twisted), "
            f"{c['wedges']} wedges ({c['wedges_perfect']} perfect, "
            f"{c['wedges_twisted']} twisted), "
            f"{c['hexes']} hexes ({c['hexes_perfect']} perfect, "
            f"{c['hexes_twisted']} twisted)."
        )

    def _bump(self, kind: str) -> None:
        previous = self.counts[kind]
        self.counts[kind] += 1
        next_ping = self._next_ping.get(kind, 1)
        if previous >= next_ping:
            self._next_ping[kind] = next_ping * 2
            logger.debug(self.summary())

    def find_or_emit_vertex(self, vertex: Vertex) -> int:
        """Index of the vertex at ``vertex.pos``, adding it if it is new."""
        found = self._vertex_index.get(vertex.pos)
        if found is not None:
            return found
        new_id = len(self.vertices)
        if new_id >= MAX_VERTEX_INDEX:
            raise OverflowError("vertex index overflow ...")
        self.vertices.append(vertex.pos)
        self.vertex_tag.append(vertex.scalar_id)
        self._vertex_index[vertex.pos] = new_id
        return new_id

    def emit_tet(self, vertices: Sequence[Vertex]) -> tuple[int, int, int, int]:
        """Add a tetrahedron of four distinct vertices."""
        if len(vertices) != 4:
            raise ValueError("a tetrahedron has four vertices")
        tet = tuple(self.find_or_emit_vertex(v) for v in vertices)
        if len(set(tet)) != 4:
            raise ValueError(f"degenerate tetrahedron {tet}")
        self.tets.append(tet)
        self._bump("tets")
        return tet

    def emit_pyramid(self, base: Sequence[Vertex], top: Vertex) -> tuple[int, ...]:
        """Add a pyramid with a four-vertex base and a top vertex."""
        if len(base) != 4:
            raise ValueError("a pyramid base has four vertices")
        top_id = self.find_or_emit_vertex(top)
        pyr = (*(self.find_or_emit_vertex(v) for v in base), top_id)
        if is_planar_quad_face(*base):
            self.counts["pyramids_perfect"] += 1
        else:
            self.counts["pyramids_twisted"] += 1
        self.pyrs.append(pyr)
        self._bump("pyramids")
        return pyr

    def emit_wedge(self, front: Sequence[Vertex], back: Sequence[Vertex]) -> tuple[int, ...]:
        """Add a wedge from its front and back triangles."""
        if len(front) != 3 or len(back) != 3:
            raise ValueError("wedge triangles have three vertices")
        wedge = tuple(self.find_or_emit_vertex(v) for v in (*front, *back))
        if (is_planar_quad_face(front[0], front[1], back[0], back[1])
                and is_planar_quad_face(front[0], front[2], back[0], back[2])
                and is_planar_quad_face(front[1], front[2], back[1], back[2])):
            self.counts["wedges_perfect"] += 1
        else:
            self.counts["wedges_twisted"] += 1
        self.wedges.append(wedge)
        self._bump("wedges")
        return wedge

    def emit_hex(self, corners: Sequence[Vertex], level: int) -> tuple[int, ...]:
        """Add a hexahedron; with ``level`` != -1 it is kept as a perfect cube of that level."""
        if len(corners) != 8:
            raise ValueError("a hexahedron has eight vertices")
        hex_ids = tuple(self.find_or_emit_vertex(v) for v in corners)
        if level != -1:
            lower = tuple(min(v.pos[axis] for v in corners) for axis in range(3))
            cube = Cube(lower, level, tuple(v.scalar_id for v in corners))
            self.cubes_on_level.setdefault(level, []).append(cube)
            self.counts["hexes_perfect"] += 1
        else:
            self.hexes.append(hex_ids)
            self.counts["hexes_twisted"] += 1
        self._bump("hexes")
        return hex_ids

    def try_pyramid(self, base: Sequence[Vertex], top: Vertex,
                    num_unique_vertices: int) -> None:
        """Emit a pyramid, a tetrahedron or nothing for a cell whose one face collapsed."""
        if num_unique_vertices == 5:
            self.emit_pyramid(base, top)
            return
        if num_unique_vertices == 4:
            for i in range(4):
                if base[i] == base[(i + 1) % 4]:
                    rest = [base[(i + k) % 4] for k in (1, 2, 3)]
                    self.emit_tet([*rest, top])
                    return
            if base[0] == base[2] or base[1] == base[3]:
                return
            raise DualMeshError("this case should not happen!?")
        raise DualMeshError("this cannot happen!?")

    def _try_wedge(self, corners: Sequence[Vertex], front: Sequence[int],
                   back: Sequence[int]) -> None:
        self.emit_wedge([corners[i] for i in front], [corners[i] for i in back])

    def _classify(self, v: Sequence[Vertex], min_level: int, max_level: int) -> None:
        if min_level == max_level:
            self.emit_hex(v, min_level)
            return
        num_unique = len(set(v))
        if num_unique == 8:
            self.emit_hex(v, -1)
            return
        if num_unique < 4:
            return
        for face, base, top in _PYRAMID_FACES:
            first = v[face[0]]
            if all(v[i] == first for i in face[1:]):
                self.try_pyramid([v[i] for i in base], v[top], num_unique)
                return
        for (a, b), (c, d), front, back in _WEDGE_CASES:
            if v[a] == v[b] and v[c] == v[d]:
                self._try_wedge(v, front, back)
                return
        self.emit_hex(v, -1)

    def do_cell(self, exa: Exa, cell: Cell) -> None:
        """Emit the dual cells around ``cell`` that it is responsible for."""
        self_id = exa.find(cell.center())
        if self_id is None or exa.cell_list[self_id] != cell:
            raise DualMeshError("bug in Exa.find()")

        for dz, dy, dx in product((-1, 1), repeat=3):
            corners: dict[tuple[int, int, int], int] = {}
            for iz, iy, ix in product((0, 1), repeat=3):
                found = exa.find(cell.neighbor((dx * ix, dy * iy, dz * iz)).center())
                if found is not None:
                    corners[(iz, iy, ix)] = found
            if len(corners) < 8:
                continue

            corner_cells = {key: exa.cell_list[idx] for key, idx in corners.items()}
            levels = [c.level for c in corner_cells.values()]
            min_level, max_level = min(levels), max(levels)
            if min_level < cell.level:
                # generated from a finer level
                continue

            min_cell = cell
            for other in corner_cells.values():
                if other.level == cell.level and other < min_cell:
                    min_cell = other
            if min_cell != cell:
                continue

            fz, fy, fx = int(dz < 0), int(dy < 0), int(dx < 0)
            v = []
            for iz, iy, ix in _CORNER_ORDER:
                c = corner_cells[(iz ^ fz, iy ^ fy, ix ^ fx)]
                v.append(Vertex(c.center(), c.scalar_id))
            self._classify(v, min_level, max_level)


def process(exa: Exa) -> DualMesh:
    """Sort the cells of ``exa`` and build its dual mesh."""
    logger.info("sorting cell list for query")
    exa.sort()
    logger.info("sorted, starting to query")
    mesh = DualMesh()
    for cell in exa.cell_list:
        mesh.do_cell(exa, cell)
    return mesh


def write_cubes(level: int, cubes: Sequence[Cube], out_file_name) -> Path:
    """Write the perfect cubes of one level to ``<out>_<level>.cubes``."""
    path = Path(f"{out_file_name}_{level}.cubes")
    with path.open("wb") as out:
        for cube in cubes:
            out.write(cube.pack())
    return path


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Read an AMR cells file, build the dual mesh and write its per-level cube files."""
    args = list(sys.argv[1:] if argv is None else argv)
    cells_file_name = ""
    out_file_name = ""
    it = iter(args)
    for arg in it:
        if arg == "-o":
            out_file_name = next(it, "")
        elif arg.startswith("-") or cells_file_name:
            print(USAGE, file=sys.stderr)
            return 1
        else:
            cells_file_name = arg
    if not cells_file_name:
        print(USAGE, file=sys.stderr)
        return 1

    exa = Exa()
    for logical in read_cells(cells_file_name):
        exa.add(logical)
    print(f"done reading, found {len(exa)} cells")

    mesh = process(exa)
    print(mesh.summary())
    print(f"vertices={len(mesh.vertices)}")
    print(f"hexes={len(mesh.hexes)}")
    for level in sorted(mesh.cubes_on_level):
        path = write_cubes(level, mesh.cubes_on_level[level], out_file_name)
        print(f"Saving level-{level} cubes to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())