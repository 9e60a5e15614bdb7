"""Utility helpers"""

from .logger import ColoredFormatter, setup_logging

__all__ = ['ColoredFormatter', 'setup_logging']
