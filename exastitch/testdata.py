"""Generate a tiny, fixed ExaBricks data set for testing."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

BRICKS_FILE_NAME = "exa-test-data.bricks"
SCALAR_FILE_NAME = "exa-test-data.scalar"


@dataclass
class ExaBrick:
    """A brick of cells on one refinement level, indexing into a scalar array."""

    lower: tuple[int, int, int]
    size: tuple[int, int, int]
    level: int
    begin: int

    @property
    def volume(self) -> int:
        return self.size[0] * self.size[1] * self.size[2]


def make_test_bricks() -> list[ExaBrick]:
    """The two hard-coded test bricks."""
    return [
        ExaBrick(lower=(0, 0, 0), size=(1, 1, 1), level=1, begin=0),
        ExaBrick(lower=(2, 0, 0), size=(2, 2, 2), level=0, begin=1),
    ]


def make_test_scalars() -> list[float]:
    """The nine hard-coded test scalars."""
    scalars = [0.0] * 9
    scalars[0] = 0.5
    for i in (2, 4, 6, 8):
        scalars[i] = 1.0
    return scalars


def write_bricks(stream: BinaryIO, bricks: Sequence[ExaBrick], indices: Sequence[int]) -> None:
    """Write bricks as size, lower, level and then the brick's scalar indices."""
    for brick in bricks:
        stream.write(struct.pack("<3i", *brick.size))
        stream.write(struct.pack("<3i", *brick.lower))
        stream.write(struct.pack("<i", brick.level))
        ids = indices[brick.begin:brick.begin + brick.volume]
        if len(ids) != brick.volume:
            raise ValueError("not enough indices for brick")
        stream.write(struct.pack(f"<{len(ids)}i", *ids))


def write_test_data(directory=".") -> tuple[Path, Path]:
    """Write the test bricks and scalars into ``directory``; return both paths."""
    directory = Path(directory)
    bricks_path = directory / BRICKS_FILE_NAME
    scalar_path = directory / SCALAR_FILE_NAME
    indices = list(range(9))
    with bricks_path.open("wb") as stream:
        write_bricks(stream, make_test_bricks(), indices)
    scalars = make_test_scalars()
    scalar_path.write_bytes(struct.pack(f"<{len(scalars)}f", *scalars))
    return bricks_path, scalar_path


def main(argv: Optional[Sequence[str]] = None) -> int:
    write_test_data(".")
    return 0


if __name__ == "__main__":
    sys.exit(main())