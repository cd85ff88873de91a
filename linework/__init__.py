# linework/__init__.py
"""Batch generator for printable line-art coloring books."""

__version__ = "0.1.0"
