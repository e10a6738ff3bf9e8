[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "execservice"
version = "0.1.0"
description = "Job execution cluster: a coordinator hands jobs to worker nodes that build and run Dockerfiles"
requires-python = ">=3.10"
keywords = ["jobs", "distributed", "docker", "coordinator", "worker", "mongodb"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "pymongo",
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
execservice = "execservice.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["execservice"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
