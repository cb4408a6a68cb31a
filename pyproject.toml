[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "toydb"
version = "0.1.0"
description = "A small paged-file storage engine with an LRU/MRU buffer pool and a slotted-page record layer"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "paged file", "buffer pool", "lru", "mru", "slotted page", "record manager"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
toydb = "toydb.workloads:main"

[tool.hatch.build.targets.wheel]
packages = ["toydb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
