"""Entry point for running apogee as a module.

Usage:
    python -m apogee
    python -m apogee --help
"""

from apogee.cli import app

if __name__ == "__main__":
    app()
