[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zkasm"
version = "0.1.0"
description = "Analysis and compilation of zero-knowledge virtual machine assembly into PIL constraint systems"
requires-python = ">=3.10"
dependencies = []
keywords = ["zero-knowledge", "pil", "assembly", "compiler", "constraints", "zkvm"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zkasm"]

[tool.pytest.ini_options]
addopts = "-ra"
