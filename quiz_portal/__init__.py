"""Timed quiz assessment engine for the college portal."""

__version__ = "0.1.0"
