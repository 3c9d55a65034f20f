[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "loomy"
version = "0.1.0"
description = "A thread-based worker pool with resizable workers, timeouts, cancellation contexts and lifecycle hooks."
requires-python = ">=3.10"
dependencies = []
keywords = ["worker pool", "threads", "concurrency", "jobs", "timeout", "cancellation"]
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
    "Topic :: Software Development :: Libraries",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["loomy"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
