"""Anatomical term hierarchy and zoom-adaptive dataset marker clustering."""

__version__ = "0.1.0"
