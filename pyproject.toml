[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "upktools"
version = "0.1.0"
description = "Inspect, decompress and extract objects from Unreal Engine 3 .upk packages"
requires-python = ">=3.10"
dependencies = []
keywords = ["unreal", "upk", "package", "unpacker", "lzo", "game-assets"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
upktools = "upktools.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["upktools"]

[tool.pytest.ini_options]
addopts = "-ra"
