[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kvlab"
version = "0.1.0"
description = "Building blocks for distributed-systems experiments: a simulated RPC network, a versioned key/value service, a linearizability model and a small MapReduce toolkit."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "distributed-systems",
    "mapreduce",
    "key-value",
    "rpc",
    "linearizability",
    "simulation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kvlab-mrsequential = "kvlab.mrsequential:main"

[tool.hatch.build.targets.wheel]
packages = ["kvlab"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
