"""Procedural world generation: terrain, hydrology, climate and kingdoms."""

__version__ = "0.1.0"
