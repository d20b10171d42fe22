[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fusewire"
version = "0.1.0"
description = "FUSE kernel wire protocol structures, message buffers and mount helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["fuse", "filesystem", "mount", "kernel", "protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fusewire"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
