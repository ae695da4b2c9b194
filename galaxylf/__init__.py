"""Halo mass functions, lensing magnification statistics and UV luminosity functions."""

__version__ = "0.1.0"