[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lecoin"
version = "0.1.0"
description = "A toy proof-of-work cryptocurrency with simulated hosts, a virtual switch, miners and wallets"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "blockchain",
    "cryptocurrency",
    "proof-of-work",
    "mining",
    "ecdsa",
    "simulation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
lecoin-client = "lecoin.client:main"
lecoin-vswitch = "lecoin.vswitch:main"

[tool.hatch.build.targets.wheel]
packages = ["lecoin"]

[tool.hatch.build.targets.sdist]
include = [
    "lecoin",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
