"""Utility modules for apogee."""

from apogee.utils.log import configure_logging

__all__ = ["configure_logging"]
