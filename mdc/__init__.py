"""Run docker compose across every compose project in a directory tree."""

__version__ = "0.1.0"
__all__ = ["__version__"]