[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "logservice"
version = "0.1.0"
description = "Client-side building blocks for a cloud log service: request signing, index models, retries, credentials and a batching log producer"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["logging", "log-service", "producer", "batching", "signature", "retry"]
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
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["logservice"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
