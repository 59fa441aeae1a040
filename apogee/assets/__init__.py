"""Packaged data files (starter config)."""
