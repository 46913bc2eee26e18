[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tacpower"
version = "0.1.0"
description = "Test automation controller core: DUT power switching with fault protection, LED patterns, sensor polling, journal event streaming and a static file HTTP server"
requires-python = ">=3.10"
dependencies = []
keywords = ["test automation", "power switching", "sysfs", "led", "embedded", "labgrid"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tacpower-http = "tacpower.http_server:main"

[tool.hatch.build.targets.wheel]
packages = ["tacpower"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
