"""Hands-free voice call loop for a text chat assistant."""

__version__ = "0.1.0"
