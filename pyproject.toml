[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "miclaw"
version = "0.1.0"
description = "Agent tool suite: file, shell, process, cron, memory and messaging tools plus a signed webhook receiver"
requires-python = ">=3.10"
dependencies = []
keywords = ["agent", "llm", "tools", "cron", "webhook", "unified-diff", "grep", "glob"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["miclaw"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
