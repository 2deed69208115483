"""Examination seating allocation service."""

__version__ = "0.1.0"
