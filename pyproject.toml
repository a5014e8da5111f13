[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "branchsim"
version = "0.1.0"
description = "Trace-driven simulator of a BTB-based two-bit branch predictor"
requires-python = ">=3.10"
dependencies = []
keywords = ["branch prediction", "btb", "simulator", "computer architecture", "trace"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
branchsim = "branchsim.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["branchsim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
