import logging
import os
import sys
from typing import Optional, Union


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps each record in the ANSI color of its level"""

    COLORS = {
        'DEBUG': '\033[36m',  # Cyan
        'INFO': '\033[32m',  # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',  # Red
        'CRITICAL': '\033[41m\033[37m',  # White on Red background
        'RESET': '\033[0m'
    }

    def format(self, record):
        log_message = super().format(record)
        color = self.COLORS.get(record.levelname)
        if color:
            return f"{color}{log_message}{self.COLORS['RESET']}"
        return log_message


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        # getLevelName maps known names to ints and echoes back anything else
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logger(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    """Set up and return a logger with colored stdout output.

    Calling it again for the same name only adjusts the level, so repeated
    imports do not stack handlers.
    """
    level = _resolve_level(level)

    _logger = logging.getLogger(name)
    _logger.setLevel(level)

    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        _logger.addHandler(handler)

    for handler in _logger.handlers:
        handler.setLevel(level)

    return _logger


# Create a default logger for import
logger = setup_logger("todo_api")
