"""Candidate geometry, thresholding helpers and frame-to-frame tracking for square fiducial markers."""

__version__ = "0.1.0"

__all__ = [
    "candidates",
    "thresholding",
    "tracking",
]