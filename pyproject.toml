[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "narrowpass"
version = "0.1.0"
description = "Narrow passage detection and approach path planning for ground robots on elevation grid maps"
requires-python = ">=3.10"
keywords = ["robotics", "navigation", "grid map", "elevation map", "path planning", "narrow passage"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["narrowpass"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
