[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "potongos"
version = "0.1.0"
description = "A simulated hobby operating-system kernel: block heap, paging, GDT, disk streaming, FAT16, ELF loading, keyboard, tasks and processes"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "operating-system", "fat16", "elf", "paging", "heap", "simulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["potongos"]

[tool.pytest.ini_options]
addopts = "-ra"
