"""Tribeboard - selfie submission and tribe moodboard image pipeline."""

__version__ = "0.1.0"

from tribeboard.core.config import TribeboardConfig, config

__all__ = [
    "TribeboardConfig",
    "config",
]
