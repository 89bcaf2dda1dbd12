[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bmkernel"
version = "0.1.0"
description = "BareMetal File System disk image tool and simulated teaching-kernel resources: allocators, scheduler, semaphores, pipes and keyboard input"
requires-python = ">=3.10"
dependencies = []
keywords = ["bmfs", "filesystem", "disk-image", "kernel", "scheduler", "memory-allocator", "buddy-allocator", "semaphores", "pipes"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Operating System",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bmfs = "bmkernel.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bmkernel"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
