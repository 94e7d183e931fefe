"""User library configuration."""

from .directories import DirectorySettings

__all__ = ["DirectorySettings"]
