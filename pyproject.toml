[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aquila"
version = "0.1.0"
description = "Incremental multi-query subgraph matching over dynamic labelled graphs using shared matching trees"
requires-python = ">=3.10"
dependencies = []
keywords = ["graph", "subgraph matching", "continuous queries", "streaming", "graph database"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["aquila"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
