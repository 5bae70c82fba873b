[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fever"
version = "0.1.0"
description = "Building blocks for Suricata EVE-JSON events: field extraction, alert creation, compact flow encoding and metadata submission"
requires-python = ">=3.10"
keywords = ["suricata", "eve", "ids", "network-monitoring", "amqp", "alerting", "influxdb"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Information Technology",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "pika",
    "cachetools",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fever"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
