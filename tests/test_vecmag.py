import struct

import pytest

from exastitch.vecmag import main, read_floats, vector_magnitude


def _write(path, values):
    path.write_bytes(struct.pack(f"<{len(values)}f", *values))


def _read(path):
    data = path.read_bytes()
    return list(struct.unpack(f"<{len(data) // 4}f", data))


def test_read_floats_round_trip(tmp_path):
    p = tmp_path / "a.bin"
    _write(p, [1.5, -2.0, 0.25])
    assert read_floats(p) == [1.5, -2.0, 0.25]


def test_read_floats_missing_file(tmp_path):
    assert read_floats(tmp_path / "nope.bin") == []


def test_read_floats_ignores_trailing_bytes(tmp_path):
    p = tmp_path / "a.bin"
    p.write_bytes(struct.pack("<f", 2.0) + b"\x01\x02")
    assert read_floats(p) == [2.0]


def test_vector_magnitude_values():
    assert vector_magnitude([3.0, 0.0], [4.0, 0.0], [0.0, 2.0]) == pytest.approx([5.0, 2.0])


def test_vector_magnitude_is_nonnegative_and_sign_invariant():
    xs, ys, zs = [1.0, -1.0], [-2.0, 2.0], [0.5, -0.5]
    result = vector_magnitude(xs, ys, zs)
    assert result[0] == pytest.approx(result[1])
    assert all(v >= 0 for v in result)


def test_vector_magnitude_length_mismatch():
    with pytest.raises(ValueError):
        vector_magnitude([1.0], [1.0, 2.0], [1.0])


def test_main_writes_output(tmp_path):
    px, py, pz, out = (tmp_path / n for n in ("x.bin", "y.bin", "z.bin", "out.bin"))
    _write(px, [3.0, 1.0])
    _write(py, [4.0, 0.0])
    _write(pz, [0.0, 0.0])
    rc = main([str(px), str(py), str(pz), "-o", str(out)])
    assert rc == 0
    assert _read(out) == pytest.approx([5.0, 1.0])


def test_main_usage_without_output(tmp_path, capsys):
    px = tmp_path / "x.bin"
    _write(px, [1.0])
    rc = main([str(px), str(px), str(px)])
    assert rc == 0
    assert "Usage" in capsys.readouterr().err
    assert sorted(p.name for p in tmp_path.iterdir()) == ["x.bin"]


def test_main_usage_with_too_few_inputs(tmp_path, capsys):
    out = tmp_path / "out.bin"
    rc = main(["a.bin", "-o", str(out)])
    assert rc == 0
    assert "Usage" in capsys.readouterr().err
    assert not out.exists()