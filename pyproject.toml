[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "psxperiph"
version = "0.1.0"
description = "PlayStation digital pad, memory card and serial port emulation, with CD-ROM register and XA-ADPCM building blocks"
requires-python = ">=3.10"
dependencies = []
keywords = ["emulator", "playstation", "psx", "xa-adpcm", "memory-card", "controller", "serial"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
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

[tool.hatch.build.targets.wheel]
packages = ["psxperiph"]

[tool.pytest.ini_options]
addopts = "-ra"
