"""Point location and interpolation inside pyramid, wedge and hexahedron cells.

Each cell is given as a sequence of vertices ``(x, y, z, w)`` where ``w`` is
the scalar value stored at the vertex. The parametric coordinates of a point
are found by Newton iteration. The value interpolated at that point is
returned, or ``None`` if the point lies outside the cell or the iteration fails.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

Vec3 = Sequence[float]
Vertex4 = Sequence[float]

_DIVERGED = 1e6
_MAX_ITERATION = 10
_CONVERGED = 1e-4
_OUTSIDE_CELL_TOLERANCE = 1e-6
_DETERMINANT_TOLERANCE = 1e-6


def _cross(a: Vec3, b: Vec3) -> tuple[float, float, float]:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def det(vx: Vec3, vy: Vec3, vz: Vec3) -> float:
    """Determinant of the 3x3 matrix with columns ``vx``, ``vy``, ``vz``."""
    return _dot(vx, _cross(vy, vz))


def pyramid_interpolation_functions(pcoords: Vec3) -> list[float]:
    """The five pyramid shape functions at parametric coordinates ``pcoords``."""
    r, s, t = pcoords
    rm, sm, tm = 1.0 - r, 1.0 - s, 1.0 - t
    return [
        rm * sm * tm,
        r * sm * tm,
        r * s * tm,
        rm * s * tm,
        t,
    ]


def pyramid_interpolation_derivs(pcoords: Vec3) -> list[float]:
    """The 15 pyramid shape-function derivatives: five each for r, s and t."""
    r, s, t = pcoords
    return [
        # r-derivatives
        -(s - 1.0) * (t - 1.0),
        (s - 1.0) * (t - 1.0),
        s - s * t,
        s * (t - 1.0),
        0.0,
        # s-derivatives
        -(r - 1.0) * (t - 1.0),
        r * (t - 1.0),
        r - r * t,
        (r - 1.0) * (t - 1.0),
        0.0,
        # t-derivatives
        -(r - 1.0) * (s - 1.0),
        r * (s - 1.0),
        -r * s,
        (r - 1.0) * s,
        1.0,
    ]


def wedge_interpolation_functions(pcoords: Vec3) -> list[float]:
    """The six wedge shape functions at parametric coordinates ``pcoords``."""
    r, s, t = pcoords
    return [
        (1.0 - r - s) * (1.0 - t),
        r * (1.0 - t),
        s * (1.0 - t),
        (1.0 - r - s) * t,
        r * t,
        s * t,
    ]


def wedge_interpolation_derivs(pcoords: Vec3) -> list[float]:
    """The 18 wedge shape-function derivatives: six each for r, s and t."""
    r, s, t = pcoords
    return [
        # r-derivatives
        -1.0 + t,
        1.0 - t,
        0.0,
        -t,
        t,
        0.0,
        # s-derivatives
        -1.0 + t,
        0.0,
        1.0 - t,
        -t,
        0.0,
        t,
        # t-derivatives
        -1.0 + r + s,
        -r,
        -s,
        1.0 - r - s,
        r,
        s,
    ]


def hex_interpolation_functions(pcoords: Vec3) -> list[float]:
    """The eight hexahedron shape functions at parametric coordinates ``pcoords``."""
    r, s, t = pcoords
    rm, sm, tm = 1.0 - r, 1.0 - s, 1.0 - t
    return [
        rm * sm * tm,
        r * sm * tm,
        r * s * tm,
        rm * s * tm,
        rm * sm * t,
        r * sm * t,
        r * s * t,
        rm * s * t,
    ]


def hex_interpolation_derivs(pcoords: Vec3) -> list[float]:
    """The 24 hexahedron shape-function derivatives: eight each for r, s and t."""
    r, s, t = pcoords
    rm, sm, tm = 1.0 - r, 1.0 - s, 1.0 - t
    return [
        # r-derivatives
        -sm * tm,
        sm * tm,
        s * tm,
        -s * tm,
        -sm * t,
        sm * t,
        s * t,
        -s * t,
        # s-derivatives
        -rm * tm,
        -r * tm,
        r * tm,
        rm * tm,
        -rm * t,
        -r * t,
        r * t,
        rm * t,
        # t-derivatives
        -rm * sm,
        -r * sm,
        -r * s,
        -rm * s,
        rm * sm,
        r * sm,
        r * s,
        rm * s,
    ]


def _weighted_sum(vertices: Sequence[Vertex4], weights: Sequence[float]) -> list[float]:
    total = [0.0, 0.0, 0.0]
    for vertex, weight in zip(vertices, weights):
        total[0] += vertex[0] * weight
        total[1] += vertex[1] * weight
        total[2] += vertex[2] * weight
    return total


def _intersect(
    point: Vec3,
    vertices: Sequence[Vertex4],
    count: int,
    functions: Callable[[Vec3], list[float]],
    derivs: Callable[[Vec3], list[float]],
    inside: Callable[[Sequence[float], float, float], bool],
) -> Optional[float]:
    if len(vertices) != count:
        raise ValueError(f"expected {count} vertices, got {len(vertices)}")

    pcoords = [0.5, 0.5, 0.5]
    weights: list[float] = []
    converged = False
    for _ in range(_MAX_ITERATION):
        weights = functions(pcoords)
        d = derivs(pcoords)

        fcol = _weighted_sum(vertices, weights)
        rcol = _weighted_sum(vertices, d[0:count])
        scol = _weighted_sum(vertices, d[count:2 * count])
        tcol = _weighted_sum(vertices, d[2 * count:3 * count])
        fcol = [fcol[i] - point[i] for i in range(3)]

        denom = det(rcol, scol, tcol)
        if abs(denom) < _DETERMINANT_TOLERANCE:
            return None

        deltas = (
            det(fcol, scol, tcol) / denom,
            det(rcol, fcol, tcol) / denom,
            det(rcol, scol, fcol) / denom,
        )
        pcoords = [p - dp for p, dp in zip(pcoords, deltas)]

        if all(abs(dp) < _CONVERGED for dp in deltas):
            converged = True
            break
        if any(abs(p) > _DIVERGED for p in pcoords):
            return None

    if not converged:
        return None

    lower = 0.0 - _OUTSIDE_CELL_TOLERANCE
    upper = 1.0 + _OUTSIDE_CELL_TOLERANCE
    if not inside(pcoords, lower, upper):
        return None
    return sum(weight * vertex[3] for weight, vertex in zip(weights, vertices))


def _in_unit_cube(pcoords: Sequence[float], lower: float, upper: float) -> bool:
    return all(lower <= p <= upper for p in pcoords)


def _in_wedge(pcoords: Sequence[float], lower: float, upper: float) -> bool:
    return _in_unit_cube(pcoords, lower, upper) and pcoords[0] + pcoords[1] <= upper


def intersect_pyramid(point: Vec3, vertices: Sequence[Vertex4]) -> Optional[float]:
    """Interpolated value at ``point`` inside a pyramid of five vertices, or ``None``."""
    return _intersect(
        point, vertices, 5,
        pyramid_interpolation_functions, pyramid_interpolation_derivs, _in_unit_cube,
    )


def intersect_wedge(point: Vec3, vertices: Sequence[Vertex4]) -> Optional[float]:
    """Interpolated value at ``point`` inside a wedge of six vertices, or ``None``."""
    return _intersect(
        point, vertices, 6,
        wedge_interpolation_functions, wedge_interpolation_derivs, _in_wedge,
    )


def intersect_hex(point: Vec3, vertices: Sequence[Vertex4]) -> Optional[float]:
    """Interpolated value at ``point`` inside a hexahedron of eight vertices, or ``None``."""
    return _intersect(
        point, vertices, 8,
        hex_interpolation_functions, hex_interpolation_derivs, _in_unit_cube,
    )