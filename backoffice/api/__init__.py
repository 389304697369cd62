"""HTTP API for the back-office engine."""

from backoffice import __version__

__all__ = ["__version__"]
