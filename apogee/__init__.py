"""apogee - Shell initialization generator.

Detects which configured modules (cloud storage mounts, installed apps,
hooks, templates) are present on the host and emits shell code for zsh,
bash, fish and PowerShell.
"""

__version__ = "0.4.0"
__author__ = "apogee contributors"
__license__ = "MIT"

__all__ = ["__version__", "__author__", "__license__"]
