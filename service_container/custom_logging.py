"""
Logging setup for the service container.
Provides stdout logging plus optional rotating file logs.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "service_container"

_CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_FILE_FORMAT = (
    '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - '
    '%(funcName)s() - %(message)s'
)


class ContainerLogger:
    """Configures the handlers of the service container's logger tree."""

    def __init__(self,
                 name: str = ROOT_LOGGER_NAME,
                 log_level: str = "INFO",
                 log_dir: Optional[str] = None,
                 max_file_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5):
        """
        Initialize the container logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (console only if None)
            max_file_size: Maximum size for log files before rotation
            backup_count: Number of backup files to keep
        """
        self.name = name
        self.log_level = getattr(logging, log_level.upper())
        self.log_dir = Path(log_dir) if log_dir else None
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        self.logger = logging.getLogger(name)
        self.logger.setLevel(self.log_level)

        # Prevent duplicate handlers
        if self.logger.handlers:
            return

        self._setup_handlers()

    def _setup_handlers(self):
        """Set up console and (optionally) file handlers."""
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(
            logging.Formatter(_CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        )
        self.logger.addHandler(console_handler)

        if self.log_dir is None:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        detailed_formatter = logging.Formatter(_FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / f"{self.name}.log",
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(detailed_formatter)

        # Error file handler for errors only
        error_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / f"{self.name}_errors.log",
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(detailed_formatter)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(error_handler)

    def get_logger(self) -> logging.Logger:
        """Return the configured logger instance."""
        return self.logger

    def set_level(self, level: str):
        """Change logging level at runtime."""
        new_level = getattr(logging, level.upper())
        self.logger.setLevel(new_level)
        for handler in self.logger.handlers:
            if handler.level != logging.ERROR:
                handler.setLevel(new_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger inside the service container namespace.

    The namespace root gets a stdout handler on first use; child loggers
    propagate to it.

    Args:
        name: Dotted child name (e.g. "container"), or None for the root

    Returns:
        Logger instance
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        ContainerLogger()
    if not name or name == ROOT_LOGGER_NAME:
        return root
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logger(config=None) -> logging.Logger:
    """
    Reconfigure the namespace root logger from a LoggingConfig.

    Existing handlers on the root are replaced.

    Args:
        config: LoggingConfig instance (defaults used if None)

    Returns:
        Configured root logger
    """
    from service_container.config import LoggingConfig

    config = config or LoggingConfig()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    return ContainerLogger(
        name=ROOT_LOGGER_NAME,
        log_level=config.level,
        log_dir=config.log_dir,
        max_file_size=config.max_file_size,
        backup_count=config.backup_count,
    ).get_logger()
