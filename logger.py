"""
Logging utility for the bot session hub.

Every module grabs its own logger through setup_logger(); the discord
library loggers are tuned separately with quiet_library_loggers().
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Union


CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _to_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(name: str, log_file: str = None, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Setup logger with console and optional file output.

    Args:
        name: Logger name (typically __name__)
        log_file: Optional path to log file (parent dirs are created)
        level: Logging level, int or name ("DEBUG", "INFO", ...)

    Returns:
        Configured logger instance
    """
    level = _to_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Modules are imported once per process, but create_app() may run many times in tests
    if logger.handlers:
        return logger

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    logger.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(file_handler)

    return logger


def quiet_library_loggers(level: Union[int, str], names: Iterable[str] = ("discord", "discord.gateway", "discord.client")) -> None:
    """discord.py logs every heartbeat/resume on INFO; keep only what matters."""
    level = _to_level(level)
    for name in names:
        logging.getLogger(name).setLevel(level)
