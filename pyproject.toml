[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "falcout"
version = "0.1.0"
description = "Alert output channels, a watchdog and syscall event drop monitoring for a runtime security monitor"
requires-python = ">=3.10"
dependencies = []
keywords = ["security", "monitoring", "alerts", "outputs", "syslog", "event-drops"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["falcout"]

[tool.pytest.ini_options]
addopts = "-ra"
