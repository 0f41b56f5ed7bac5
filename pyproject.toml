[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mdc"
version = "0.1.0"
description = "Run docker compose across every compose project in the current directory tree"
requires-python = ">=3.10"
dependencies = []
keywords = ["docker", "compose", "docker-compose", "containers", "cli", "multi-project"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mdc = "mdc.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mdc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
