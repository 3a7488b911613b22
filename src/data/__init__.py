"""
ReviewLens Data Module
======================

Environment-driven configuration for the CLI and HTTP surfaces.

Configuration:
    Set environment variables or create a .env file.
    See src/data/config.py for all available options.
"""

from .config import get_settings, reset_settings, Settings

__version__ = "1.0.0"

__all__ = [
    "get_settings",
    "reset_settings",
    "Settings",
]
