# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Logging configuration.

All package modules log to children of the ``svreg`` logger, obtained
via :func:`get_logger`. Handlers are only attached by
:func:`setup_logging`, which is called by the command line interface;
library use of the package leaves handler configuration to the
application.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "svreg"


class ColorFormatter(logging.Formatter):
    """Console formatter with a color per logging level."""

    COLORS = {
        "DEBUG": "\033[36m",  # cyan
        "INFO": "\033[32m",  # green
        "WARNING": "\033[33m",  # yellow
        "ERROR": "\033[31m",  # red
        "CRITICAL": "\033[35m",  # magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level_short = record.levelname[0]
        return f"{color}[{timestamp}] {level_short} | {record.name}: {record.getMessage()}{reset}"


def setup_logging(
    level: str = "INFO", log_file: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """Configure the package logger hierarchy.

    Any handlers previously attached to the package logger are removed,
    so that repeated calls do not duplicate output.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path of a log file. Its parent directory is
           created if necessary.

    Returns:
        The configured package logger.

    Raises:
        ValueError: If `level` is not a valid logging level name.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Invalid logging level {level}")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(ColorFormatter())
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module-level logger.

    Args:
        name: Module name, prefixed with ``svreg.``.

    Returns:
        Logger instance.
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
