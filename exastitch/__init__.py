"""Tools for AMR volume data: dual meshes, brick grids, majorant kd-trees and element sampling."""

__version__ = "0.1.0"