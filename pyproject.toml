[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tilecut"
version = "0.1.0"
description = "Cut large minimap images into fixed-size tiles and write a reusable manifest."
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["tiles", "minimap", "image", "pyramid", "manifest", "game-assets"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tilecut = "tilecut.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tilecut"]

[tool.pytest.ini_options]
addopts = "-ra"
