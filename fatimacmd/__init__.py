"""Console tools and helpers for operating a Fatima package installation."""

__version__ = "1.0.0"