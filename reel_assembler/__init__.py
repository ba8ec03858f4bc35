"""Reel Assembler - timed image and audio assembly into video."""

__version__ = "1.0.0"
