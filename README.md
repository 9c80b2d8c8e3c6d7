# exastitch

Preprocessing tools and geometry helpers for adaptive-mesh-refinement (AMR)
volume data. The package works on plain little-endian binary files of cells,
cubes, bricks and scalars and has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Command-line tools

### Vector magnitude

Combines three raw `float32` component files into one file of magnitudes,
`sqrt(x*x + y*y + z*z)` per element:

```
exastitch-vector-magnitude vector_x.bin vector_y.bin vector_z.bin -o magnitude.bin
```

Without exactly three input files and an `-o` output, a usage line is printed
to standard error. An input file that cannot be read counts as empty;
components of different lengths raise `ValueError`.

### Test data

Writes a tiny hard-coded data set into the current directory: two bricks
(`exa-test-data.bricks`) and their nine scalars (`exa-test-data.scalar`):

```
exastitch-make-test-data
```

### Dual mesh

Reads a binary file of AMR cells (x, y, z and level as 32-bit integers per
cell) and builds the dual mesh: tetrahedra, pyramids, wedges and hexahedra
that stitch neighbouring cells of different levels. A summary of the generated
elements is printed, and the perfect cubes found where all eight corner cells
share a level are written per level to `<out>_<level>.cubes`:

```
exastitch-make-dual-mesh in.cells -o out
```

A second input file or an unknown option prints a usage line and exits with
status 1.

### Grids

Turns per-level `.cubes` files into bricks of scalar indices, one brick per
macro cell of 8×8×8 cells:

```
exastitch-make-grids out_0.cubes out_1.cubes
```

The level is read from the integer after the last `_` in each file name; a
name without one is rejected with `ValueError`. The bricks of all files are
written, one after another, to `out.grids` in the system's temporary
directory (the first file replaces it, later ones append). Running totals of
bricks, cubes and scalars are printed.

## Library

- `exastitch.uelems` — shape functions, their derivatives and Newton-iteration
  point location for pyramids, wedges and hexahedra. `intersect_pyramid`,
  `intersect_wedge` and `intersect_hex` take a point and the cell's
  `(x, y, z, value)` vertices and return the interpolated value, or `None`
  when the point is outside the cell or the iteration fails.
- `exastitch.vecmag` — `read_floats` and `vector_magnitude`.
- `exastitch.testdata` — `ExaBrick`, `make_test_bricks`, `make_test_scalars`,
  `write_bricks` and `write_test_data(directory)`.
- `exastitch.sahbuilder` — `Box3`, `Node`, `surface_area`, `diag` and
  `KDTree`. The builder splits a volume's bounds at the plane with the lowest
  surface-area × diagonal cost weighted by each half's majorant, always
  splitting the costliest leaf next, and keeps one leaf set in `final_nodes`
  for each requested leaf count. The volume is any object with a `bounds`
  attribute (a `Box3`) and a `min_max(box, color_map)` method returning a
  `(lower, upper)` pair.
- `exastitch.majorants` — `read_transfer_function` for transfer-function
  files, `parse_leaf_counts` (`"16,64,256"`), `scaled_range`,
  `majorant_domains`, `write_domains` and `build_majorant_files`, which writes
  one `<out>.n<leaves>` file per leaf count.
- `exastitch.dualcells` — `LogicalCell`, `Cell`, `lower_on_level`,
  `read_cells` and the `Exa` cell set, whose `find` returns the index of the
  cell covering a point (finest level first) after `sort`.
- `exastitch.dualmesh` — `Vertex`, `DualMesh`, `is_planar_quad_face`,
  `process` and `write_cubes`.
- `exastitch.grids` — `Cube`, `Brick`, `cell_id`, `mc_id`,
  `make_bricks_for_level`, `world_bounds`, the OBJ writers `write_quad_obj`
  and `write_obj`, and `write_bin`.

```python
from exastitch.vecmag import vector_magnitude

print(vector_magnitude([3.0], [4.0], [0.0]))  # [5.0]
```

## What the package does not do

- There is no renderer or viewer; nothing here displays a volume.
- There is no command for building majorant kd-trees. `build_majorant_files`
  needs a volume object supplied by the caller; the package has no loader for
  brick models that would provide one.
- The dual-mesh command keeps the tetrahedra, pyramids, wedges and twisted
  hexahedra only in memory (`DualMesh`); it writes just the per-level cube
  files, not an unstructured-mesh file.