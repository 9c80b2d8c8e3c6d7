[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "exastitch"
version = "0.1.0"
description = "Tools for AMR volume data: dual-mesh generation, brick grids, majorant kd-trees and unstructured element sampling"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "amr",
    "adaptive mesh refinement",
    "volume rendering",
    "dual mesh",
    "kd-tree",
    "majorants",
    "unstructured mesh",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Visualization",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
exastitch-vector-magnitude = "exastitch.vecmag:main"
exastitch-make-test-data = "exastitch.testdata:main"
exastitch-make-grids = "exastitch.grids:main"
exastitch-make-dual-mesh = "exastitch.dualmesh:main"

[tool.hatch.build.targets.wheel]
packages = ["exastitch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
