[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "procsim"
version = "0.1.0"
description = "Operating-system teaching simulators: a process table manager, CPU scheduling, synchronization problem models and a print queue"
requires-python = ">=3.10"
dependencies = [
    "websockets",
]
keywords = [
    "operating systems",
    "process scheduling",
    "fcfs",
    "sjf",
    "round robin",
    "producer consumer",
    "simulation",
    "education",
    "websocket",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
procsim-manager = "procsim.process_manager:main"
procsim-scheduler = "procsim.scheduler_server:main"
procsim-print-queue = "procsim.print_queue:main"

[tool.hatch.build.targets.wheel]
packages = ["procsim"]

[tool.hatch.build.targets.sdist]
include = ["procsim", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
