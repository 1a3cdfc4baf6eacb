"""IoT SVG — metadata-driven, data-bound SVG runtime."""

__version__ = "0.1.0"
