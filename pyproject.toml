[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lwmesh"
version = "0.1.0"
description = "Building blocks of a lightweight mesh network layer: frame format and pool, network commands, routing table, route discovery and multicast groups, plus a small NMEA sentence parser"
requires-python = ">=3.10"
dependencies = []
keywords = ["mesh", "networking", "802.15.4", "routing", "route-discovery", "nmea", "wireless"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["lwmesh"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
