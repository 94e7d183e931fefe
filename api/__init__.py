"""Local HTTP API for the STL catalog."""

__version__ = "0.1.0"

__all__ = ["__version__"]
