[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imgproc"
version = "0.1.0"
description = "Image processing primitives: filtering, colour spaces, Canny edges and Harris corners"
requires-python = ">=3.10"
keywords = ["image processing", "convolution", "canny", "harris", "edge detection", "corner detection"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["imgproc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
