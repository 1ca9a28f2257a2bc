"""Signoff — human-in-the-loop approval relay."""

from importlib import metadata

try:
    __version__ = metadata.version("signoff")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["__version__"]
