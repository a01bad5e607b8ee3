"""Adaptive learning engine for SAT preparation."""

__version__ = "1.0.0"
