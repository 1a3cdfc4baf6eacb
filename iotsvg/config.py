"""
IoT SVG configuration — all environment variables in one place.

Read from environment at import time.
"""

from __future__ import annotations

import os


class Config:
    """Runtime configuration from environment variables."""

    # HTTP document source
    FETCH_TIMEOUT: float = float(os.environ.get("IOTSVG_FETCH_TIMEOUT", "10"))
    ASSET_BASE_URL: str = os.environ.get("IOTSVG_ASSET_BASE_URL", "")

    # Command-line tool
    LOG_LEVEL: str = os.environ.get("IOTSVG_LOG_LEVEL", "WARNING")


# Singleton instance
config = Config()
