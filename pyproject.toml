[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "fiducialkit"
version = "0.1.0"
description = "Candidate geometry, thresholding helpers and frame-to-frame tracking for square fiducial markers"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["aruco", "fiducial", "marker", "tracking", "thresholding", "computer vision"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.setuptools.packages.find]
include = ["fiducialkit*"]

[tool.pytest.ini_options]
addopts = "-ra"
