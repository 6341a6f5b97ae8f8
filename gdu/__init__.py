"""Parallel disk usage analysis, mount listing and ncdu-compatible JSON reports."""

__version__ = "0.1.0"