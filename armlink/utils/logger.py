"""
Logging setup
Colored console output and optional rotating log file
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import colorama
from colorama import Back, Fore, Style


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for terminal output."""

    # Color mapping for log levels
    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE
    }

    def __init__(self, use_colors: bool = True, stream=None):
        """
        Initialize colored formatter.

        Args:
            use_colors: Enable color output (only applied on a terminal)
            stream: Stream the handler writes to, checked for a tty
        """
        stream = stream if stream is not None else sys.stdout
        self.use_colors = use_colors and hasattr(stream, "isatty") and stream.isatty()
        super().__init__('%(asctime)s [%(levelname)-8s] %(name)s: %(message)s',
                         datefmt='%H:%M:%S')

    def format(self, record):
        # Save original level name
        levelname = record.levelname

        if self.use_colors:
            color = self.COLORS.get(levelname, '')
            record.levelname = f"{color}{levelname}{Style.RESET_ALL}"

        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def _parse_level(level: str) -> int:
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    return numeric_level


def setup_logging(level: str = "INFO", log_file: Optional[str] = None,
                  use_colors: bool = True) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Path of a rotating log file, None for console only
        use_colors: Colored level names on the console

    Returns:
        The root logger
    """
    colorama.init()

    root_logger = logging.getLogger()
    root_logger.setLevel(_parse_level(level))

    # Remove existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors, stream=sys.stdout))
    root_logger.addHandler(console_handler)

    # File handler with rotation (5MB max, keep 3 backups)
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(file_handler)

    # Reduce noise from some modules
    logging.getLogger('serial').setLevel(logging.WARNING)

    return root_logger
