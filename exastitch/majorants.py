"""Build transfer-function dependent majorant domains and store them to files."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from exastitch.sahbuilder import Box3, KDTree, Node

XF_FILE_FORMAT_MAGIC = 0x1235ABC000

_HEADER = struct.Struct("<Qfffffi")
_DOMAIN = struct.Struct("<6ff")
_COUNT = struct.Struct("<Q")
_INT_PREFIX = re.compile(r"\s*[+-]?\d+")


@dataclass
class TransferFunction:
    """A transfer function as stored in a transfer-function file."""

    opacity_scale: float
    abs_domain: tuple[float, float]
    rel_domain: tuple[float, float]
    color_map: list[float] = field(default_factory=list)

    @property
    def num_colors(self) -> int:
        return len(self.color_map) // 4


def read_transfer_function(path) -> TransferFunction:
    """Read a transfer-function file; raise ValueError if it is not one."""
    data = Path(path).read_bytes()
    if len(data) < _COUNT.size or _COUNT.unpack_from(data)[0] != XF_FILE_FORMAT_MAGIC:
        raise ValueError("Not a valid TF file")
    if len(data) < _HEADER.size:
        raise ValueError("truncated TF file")
    _, opacity, abs_lo, abs_hi, rel_lo, rel_hi, num_values = _HEADER.unpack_from(data)
    if num_values < 0:
        raise ValueError("negative color map size in TF file")
    count = num_values * 4
    end = _HEADER.size + count * 4
    if len(data) < end:
        raise ValueError("truncated TF file")
    color_map = list(struct.unpack_from(f"<{count}f", data, _HEADER.size))
    return TransferFunction(opacity, (abs_lo, abs_hi), (rel_lo, rel_hi), color_map)


def parse_leaf_counts(text: str) -> list[int]:
    """Parse a comma separated list of leaf counts such as ``"16,64,256"``."""
    if not text:
        raise ValueError("No num leaves given (-n=N1,N2,N3,...)")
    tokens = text.split(",")
    if tokens[-1] == "":
        tokens.pop()
    counts = []
    for token in tokens:
        match = _INT_PREFIX.match(token)
        if match is None:
            raise ValueError(f"invalid leaf count {token!r}")
        counts.append(int(match.group()))
    return counts


def scaled_range(value_range: Sequence[float],
                 rel_domain: Sequence[float]) -> tuple[float, float]:
    """Map a relative domain in percent onto ``value_range``."""
    lo, hi = value_range
    span = hi - lo
    return (lo + (rel_domain[0] / 100.0) * span, lo + (rel_domain[1] / 100.0) * span)


def majorant_domains(volume, color_map: Optional[Sequence[float]],
                     nodes: Sequence[Node]) -> list[tuple[Box3, float]]:
    """Pair each node's domain with the majorant of the volume inside it."""
    return [(node.domain, volume.min_max(node.domain, color_map)[1]) for node in nodes]


def write_domains(path, domains: Sequence[tuple[Box3, float]]) -> None:
    """Write a count followed by each domain's box and majorant."""
    with open(path, "wb") as out:
        out.write(_COUNT.pack(len(domains)))
        for box, majorant in domains:
            out.write(_DOMAIN.pack(*box.lower, *box.upper, majorant))


def build_majorant_files(volume, color_map: Optional[Sequence[float]],
                         num_leaves: Sequence[int], out_file_name) -> list[Path]:
    """Build the kd-tree and write one ``<out>.n<leaves>`` file per leaf count."""
    tree = KDTree(volume, color_map, num_leaves)
    written = []
    for nodes in tree.final_nodes:
        path = Path(f"{out_file_name}.n{len(nodes)}")
        write_domains(path, majorant_domains(volume, color_map, nodes))
        written.append(path)
    return written