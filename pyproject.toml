[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "corekit"
version = "0.1.0"
description = "Small building blocks: a growable byte buffer, a key/value config reader, a chained hash table, a timer heap and an event loop over epoll, kqueue or poll."
requires-python = ">=3.10"
dependencies = []
keywords = ["buffer", "hashtable", "event loop", "timers", "config"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: POSIX",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["corekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
