[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "promstatic"
version = "0.1.0"
description = "Metric vectors, a collector registry and statically declared label trees for Prometheus-style instrumentation."
requires-python = ">=3.10"
dependencies = []
keywords = ["prometheus", "metrics", "instrumentation", "monitoring", "labels"]
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
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["promstatic"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
