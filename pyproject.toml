[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eventrelay"
version = "0.1.0"
description = "Generate random events, stream them over TCP as length-prefixed JSON, and process them with duplicate detection."
requires-python = ">=3.10"
dependencies = []
keywords = ["events", "tcp", "json", "queue", "deduplication"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
eventrelay-client = "eventrelay.client_main:main"
eventrelay-server = "eventrelay.server_main:main"

[tool.hatch.build.targets.wheel]
packages = ["eventrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
