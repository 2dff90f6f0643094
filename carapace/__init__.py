"""Hybrid static and AI code review engine."""

__version__ = "0.4.0"
