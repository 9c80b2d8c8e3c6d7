import io
import math
import struct
import tempfile

import pytest

from exastitch.grids import (
    VTK_ORDER,
    Brick,
    Cube,
    cell_bounds,
    cell_id,
    main,
    make_bricks_for_level,
    make_grids_for,
    mc_id,
    read_cubes,
    level_from_file_name,
    world_bounds,
    write_bin,
    write_obj,
    write_quad_obj,
)


def _cube(lower, level=0, ids=None):
    if ids is None:
        ids = tuple(range(8))
    return Cube(tuple(float(c) for c in lower), level, tuple(ids))


def test_cube_pack_roundtrip():
    cube = _cube((1.5, -2.0, 3.0), 2, (10, 11, 12, 13, 14, 15, 16, 17))
    data = cube.pack()
    assert len(data) == 48
    assert Cube.unpack(data) == cube


def test_cube_pack_rejects_wrong_id_count():
    with pytest.raises(ValueError):
        Cube((0.0, 0.0, 0.0), 0, (1, 2, 3)).pack()


@pytest.mark.parametrize("lower,level", [
    ((4, 6, 8), 1),
    ((-2, 0, -4), 1),
    ((-8, 16, 0), 3),
    ((0, 0, 0), 0),
])
def test_cell_id_scales_back_to_lower(lower, level):
    cid = cell_id(_cube(lower, level))
    assert tuple(c * (1 << level) for c in cid) == lower


def test_cell_bounds_is_unit_cell():
    cube = _cube((-4, 2, 6), 1)
    lo, hi = cell_bounds(cube)
    assert lo == cell_id(cube)
    assert all(h - l == 1 for l, h in zip(lo, hi))


@pytest.mark.parametrize("lower", [(0, 0, 0), (-1, -9, 7), (8, -8, 15), (-16, 3, -17)])
def test_mc_id_contains_cell(lower):
    cube = _cube(lower)
    cid = cell_id(cube)
    mc = mc_id(cube, 8)
    for c, m in zip(cid, mc):
        assert m * 8 <= c < (m + 1) * 8


def test_brick_create_all_unset():
    brick = Brick()
    brick.create((1, 2, 3), (3, 3, 5))
    assert brick.num_cubes == (2, 1, 2)
    assert len(brick.scalar_ids) == 3 * 2 * 3
    assert set(brick.scalar_ids) == {-1}


def test_write_scalar_conflict_and_range():
    brick = Brick()
    brick.create((0, 0, 0), (1, 1, 1))
    brick.write_scalar((1, 1, 1), 5)
    brick.write_scalar((1, 1, 1), 5)
    assert brick.scalar_ids[-1] == 5
    with pytest.raises(ValueError):
        brick.write_scalar((1, 1, 1), 6)
    with pytest.raises(ValueError):
        brick.write_scalar((0, 0, 2), 1)


def test_single_cube_follows_vtk_order():
    ids = (10, 11, 12, 13, 14, 15, 16, 17)
    bricks = make_bricks_for_level(0, [_cube((0, 0, 0), 0, ids)])
    assert list(bricks) == [(0, 0, 0)]
    brick = bricks[(0, 0, 0)]
    assert brick.scalar_ids == [ids[i] for i in VTK_ORDER]
    assert brick.level == 0


def test_adjacent_cubes_share_vertices():
    a = _cube((0, 0, 0), 0, (0, 1, 2, 3, 4, 5, 6, 7))
    # the right cube's left face takes over the left cube's right face
    b = _cube((1, 0, 0), 0, (1, 8, 9, 2, 5, 10, 11, 6))
    bricks = make_bricks_for_level(0, [a, b])
    brick = bricks[(0, 0, 0)]
    assert brick.num_cubes == (2, 1, 1)
    assert -1 not in brick.scalar_ids
    assert sorted(brick.scalar_ids) == list(range(12))


def test_conflicting_cubes_raise():
    a = _cube((0, 0, 0), 0, (0, 1, 2, 3, 4, 5, 6, 7))
    b = _cube((1, 0, 0), 0, (99, 8, 9, 2, 5, 10, 11, 6))
    with pytest.raises(ValueError):
        make_bricks_for_level(0, [a, b])


def test_separate_macrocells_give_separate_bricks():
    cubes = [_cube((8, 0, 0)), _cube((0, 0, 0)), _cube((-1, 0, 0))]
    bricks = make_bricks_for_level(0, cubes)
    keys = list(bricks)
    assert keys == sorted(keys)
    assert len(keys) == 3
    assert {mc_id(c) for c in cubes} == set(keys)


def test_world_bounds_size_matches_level():
    brick = Brick(level=2)
    brick.create((1, -1, 0), (3, 0, 1))
    box = world_bounds(brick)
    assert box.lower == tuple(float(c * 4) for c in brick.lower)
    assert box.size() == tuple(float(n * 4) for n in brick.num_cubes)


def test_write_quad_obj():
    out = io.StringIO()
    write_quad_obj(out, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))
    lines = out.getvalue().splitlines()
    assert lines == ["v 0 0 0", "v 1 0 0", "v 0 1 0", "v 1 1 0", "f -1 -2 -4 -3"]


def test_write_obj_has_six_faces():
    out = io.StringIO()
    write_obj(out, (0.0, 0.0, 0.0), (2.0, 3.0, 4.0))
    lines = out.getvalue().splitlines()
    assert sum(line.startswith("v ") for line in lines) == 24
    assert lines.count("f -1 -2 -4 -3") == 6


def test_write_bin_layout():
    brick = Brick(level=1)
    brick.create((2, 3, 4), (3, 4, 5))
    brick.scalar_ids = list(range(8))
    out = io.BytesIO()
    write_bin(out, brick)
    data = out.getvalue()
    assert len(data) == 4 * (3 + 1 + 3 + 8)
    assert struct.unpack("<3ii3i8i", data) == (2, 3, 4, 1, 1, 1, 1, *range(8))


def test_read_cubes_roundtrip(tmp_path):
    cubes = [_cube((0, 0, 0)), _cube((2, 4, 6), 1, (7, 6, 5, 4, 3, 2, 1, 0))]
    path = tmp_path / "data_1.cubes"
    path.write_bytes(b"".join(c.pack() for c in cubes) + b"\x00\x01")
    assert read_cubes(path) == cubes


@pytest.mark.parametrize("name,level", [
    ("out_3.cubes", 3),
    ("a_b_12.cubes", 12),
    ("dir_x/file_0.cubes", 0),
])
def test_level_from_file_name(name, level):
    assert level_from_file_name(name) == level


@pytest.mark.parametrize("name", ["nounderscore.cubes", "x_abc.cubes", "x_"])
def test_level_from_file_name_invalid(name):
    with pytest.raises(ValueError):
        level_from_file_name(name)


def test_make_grids_for_append(tmp_path):
    cubes_path = tmp_path / "mesh_0.cubes"
    cubes_path.write_bytes(_cube((0, 0, 0)).pack() + _cube((9, 0, 0)).pack())
    out = tmp_path / "out.grids"
    bricks = make_grids_for(cubes_path, out)
    assert len(bricks) == 2
    first = out.read_bytes()
    assert len(first) == 2 * 4 * (3 + 1 + 3 + 8)
    make_grids_for(cubes_path, out, append=True)
    assert out.read_bytes() == first + first


def test_main_writes_default_output(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    cubes_path = tmp_path / "mesh_1.cubes"
    cubes_path.write_bytes(_cube((2, 2, 2), 1).pack())
    assert main([str(cubes_path), str(cubes_path)]) == 0
    data = (tmp_path / "out.grids").read_bytes()
    single = 4 * (3 + 1 + 3 + 8)
    assert len(data) == 2 * single
    assert data[:single] == data[single:]
    assert math.isclose(struct.unpack_from("<i", data, 12)[0], 1)