[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flowsinks"
version = "0.1.0"
description = "Connector configuration, replication models and sink logic for streaming records into external systems"
requires-python = ">=3.10"
keywords = [
    "streaming",
    "connectors",
    "sink",
    "postgres",
    "replication",
    "kafka",
    "dynamodb",
    "slack",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml>=6.0",
    "requests>=2.28",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["flowsinks"]

[tool.hatch.build.targets.sdist]
include = ["flowsinks", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
