"""Dialogue Forge: narrative graph authoring core."""

__version__ = "0.4.0"
