"""Logging setup for the apogee CLI."""

import logging
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from apogee.utils.display import err_console

_LOGGER_NAME = "apogee"


def configure_logging(verbose: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the apogee logger with a stderr rich handler and optional file sink.

    stdout is reserved for generated shell code, so nothing here writes to it.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process don't duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=err_console,
        level=level,
        show_time=False,
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger
