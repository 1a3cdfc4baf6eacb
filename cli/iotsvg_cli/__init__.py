"""Command-line tool for IoT SVG documents."""

from iotsvg import __version__

__all__ = ["__version__"]
