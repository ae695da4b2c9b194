[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "galaxylf"
version = "0.1.0"
description = "Halo mass functions, gravitational lensing magnification statistics and UV luminosity functions of high-redshift galaxies for cold, fuzzy, warm and white-noise dark matter"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "cosmology",
    "halo mass function",
    "dark matter",
    "gravitational lensing",
    "UV luminosity function",
    "MCMC",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Astronomy",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
galaxylf-lensing = "galaxylf.lensing_cli:main"
galaxylf-uvlf = "galaxylf.uvlf_cli:main"

[tool.setuptools.packages.find]
include = ["galaxylf*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
