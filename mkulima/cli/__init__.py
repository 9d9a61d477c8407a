"""Mkulima command line interface."""
from mkulima import __version__

__all__ = ["__version__"]
