"""chell - a Unix-like shell over a ChRIS-style remote filesystem"""

from .version import __version__

__all__ = ["__version__"]
