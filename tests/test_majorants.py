import struct

import pytest

from exastitch.majorants import (
    XF_FILE_FORMAT_MAGIC,
    TransferFunction,
    build_majorant_files,
    majorant_domains,
    parse_leaf_counts,
    read_transfer_function,
    scaled_range,
    write_domains,
)
from exastitch.sahbuilder import Box3, KDTree

UNIT = Box3((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))


class StepVolume:
    bounds = UNIT

    def min_max(self, box, color_map):
        return (0.0, 1.0 if box.lower[0] < 0.5 else 0.0)


def _tf_bytes(magic, opacity, abs_dom, rel_dom, colors):
    head = struct.pack("<Qfffffi", magic, opacity, *abs_dom, *rel_dom, len(colors) // 4)
    return head + struct.pack(f"<{len(colors)}f", *colors)


def _read_domains(path):
    data = path.read_bytes()
    (count,) = struct.unpack_from("<Q", data)
    body = [struct.unpack_from("<7f", data, 8 + 28 * i) for i in range(count)]
    assert len(data) == 8 + 28 * count
    return body


def test_read_transfer_function_round_trip(tmp_path):
    colors = [0.0, 0.25, 0.5, 1.0, 1.0, 0.5, 0.25, 0.0]
    path = tmp_path / "a.xf"
    path.write_bytes(_tf_bytes(XF_FILE_FORMAT_MAGIC, 2.0, (1.0, 5.0), (10.0, 90.0), colors))
    tf = read_transfer_function(path)
    assert tf == TransferFunction(2.0, (1.0, 5.0), (10.0, 90.0), colors)
    assert tf.num_colors == 2


def test_bad_magic_rejected(tmp_path):
    path = tmp_path / "bad.xf"
    path.write_bytes(_tf_bytes(XF_FILE_FORMAT_MAGIC + 1, 1.0, (0.0, 1.0), (0.0, 100.0), []))
    with pytest.raises(ValueError):
        read_transfer_function(path)


def test_truncated_color_map_rejected(tmp_path):
    path = tmp_path / "short.xf"
    data = _tf_bytes(XF_FILE_FORMAT_MAGIC, 1.0, (0.0, 1.0), (0.0, 100.0), [0.5] * 8)
    path.write_bytes(data[:-4])
    with pytest.raises(ValueError):
        read_transfer_function(path)


def test_parse_leaf_counts():
    assert parse_leaf_counts("1,2,4") == [1, 2, 4]
    assert parse_leaf_counts("8,4,") == [8, 4]


@pytest.mark.parametrize("text", ["", "x", "1,,2"])
def test_parse_leaf_counts_errors(text):
    with pytest.raises(ValueError):
        parse_leaf_counts(text)


def test_scaled_range_full_and_partial():
    assert scaled_range((2.0, 4.0), (0.0, 100.0)) == (2.0, 4.0)
    assert scaled_range((2.0, 4.0), (50.0, 100.0)) == (3.0, 4.0)


def test_majorant_domains_follow_volume():
    tree = KDTree(StepVolume(), None, [4])
    domains = majorant_domains(StepVolume(), None, tree.final_nodes[-1])
    assert len(domains) == 4
    for box, majorant in domains:
        assert majorant == (1.0 if box.lower[0] < 0.5 else 0.0)


def test_write_domains_layout(tmp_path):
    path = tmp_path / "d.bin"
    box = Box3((0.0, 1.0, 2.0), (3.0, 4.0, 5.0))
    write_domains(path, [(box, 0.5), (UNIT, 1.0)])
    assert _read_domains(path) == [
        (0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 0.5),
        (0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0),
    ]


def test_build_majorant_files(tmp_path):
    out = tmp_path / "majorants.bin"
    paths = build_majorant_files(StepVolume(), None, [3, 1], out)
    assert [p.name for p in paths] == ["majorants.bin.n1", "majorants.bin.n3"]
    assert len(_read_domains(paths[0])) == 1
    records = _read_domains(paths[1])
    assert len(records) == 3
    volume = sum((r[3] - r[0]) * (r[4] - r[1]) * (r[5] - r[2]) for r in records)
    assert volume == pytest.approx(1.0)