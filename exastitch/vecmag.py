"""Compute per-element magnitudes of a vector field stored as three float files."""

from __future__ import annotations

import math
import sys
from array import array
from pathlib import Path
from typing import Iterable, Optional, Sequence

USAGE = "Usage: ./app vector_x.bin vector_y.bin vector_z.bin -o output.bin"


def read_floats(path) -> list[float]:
    """Read a raw file of 32-bit floats; a missing file gives an empty list."""
    try:
        data = Path(path).read_bytes()
    except OSError:
        return []
    values = array("f")
    usable = len(data) - len(data) % values.itemsize
    values.frombytes(data[:usable])
    if sys.byteorder != "little":
        values.byteswap()
    return values.tolist()


def vector_magnitude(
    xs: Sequence[float], ys: Sequence[float], zs: Sequence[float]
) -> list[float]:
    """Euclidean length of each (x, y, z) triple."""
    if not len(xs) == len(ys) == len(zs):
        raise ValueError("vector components differ in length")
    return [math.sqrt(x * x + y * y + z * z) for x, y, z in zip(xs, ys, zs)]


def _write_floats(path, values: Iterable[float]) -> None:
    out = array("f", values)
    if sys.byteorder != "little":
        out.byteswap()
    Path(path).write_bytes(out.tobytes())


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    out_file_name = ""
    in_file_names: list[str] = []
    it = iter(args)
    for arg in it:
        if arg == "-o":
            out_file_name = next(it, "")
        elif not arg.startswith("-"):
            in_file_names.append(arg)

    if not out_file_name or len(in_file_names) != 3:
        print(USAGE, file=sys.stderr)
        return 0

    xs, ys, zs = (read_floats(name) for name in in_file_names)
    _write_floats(out_file_name, vector_magnitude(xs, ys, zs))
    return 0


if __name__ == "__main__":
    sys.exit(main())