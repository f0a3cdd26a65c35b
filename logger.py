# -*- coding: utf-8 -*-
"""
Logger Module
Logging configuration for simulation runs.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional

DEFAULT_LOGGER_NAME = "surplus_market"


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: int = logging.INFO,
    log_to_file: bool = False,
    log_dir: str = "logs"
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Whether to also write a timestamped log file
        log_dir: Directory for log files

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # avoid duplicate handlers when called more than once
    logger.handlers.clear()

    simple_formatter = logging.Formatter('%(levelname)s - %(message)s')
    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"simulation_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get an existing logger or create a new one.

    Args:
        name: Logger name (defaults to 'surplus_market')

    Returns:
        Logger instance
    """
    if name is None:
        name = DEFAULT_LOGGER_NAME

    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


def configure_module_loggers(level: int, log_to_file: bool = False, log_dir: str = "logs") -> logging.Logger:
    """
    Route the simulation modules' loggers through one configured handler set.

    The core modules log via logging.getLogger(__name__); they propagate to
    the root logger, so the root receives the same handlers as the named logger.
    """
    logger = setup_logger(DEFAULT_LOGGER_NAME, level, log_to_file, log_dir)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in logger.handlers:
        root.addHandler(handler)
    # named logger would otherwise emit twice through the root
    logger.propagate = False
    return logger
