"""
Rich logging utility for the speech client.
"""
import logging
import os
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install


DEFAULT_LOGGING_CONFIG = {
    "log_level": "INFO",
    "log_file": "",
    "log_file_max_size": 10485760,
    "log_file_num_backups": 5,
    "log_console": True,
    "rich_tracebacks": False,
}


class Logger:
    """Rich logger utility shared by every client component."""

    _logger: Optional[logging.Logger] = None
    _console: Optional[Console] = None

    def __init__(self):
        if self._logger is None:
            self._setup_logger()

    @classmethod
    def _setup_logger(cls):
        """Setup Rich logger configuration."""
        try:
            # Config may not be loaded yet when the first message is logged
            try:
                from speech_client.utils.static_memory_cache import StaticMemoryCache
                log_config = {**DEFAULT_LOGGING_CONFIG, **StaticMemoryCache.get_logging_config()}
            except (ImportError, AttributeError, KeyError):
                log_config = dict(DEFAULT_LOGGING_CONFIG)

            level = getattr(logging, str(log_config["log_level"]).upper(), logging.INFO)

            if log_config.get("rich_tracebacks"):
                install(show_locals=False)

            cls._console = Console(stderr=True)

            cls._logger = logging.getLogger("speech_client")
            cls._logger.setLevel(level)
            cls._logger.propagate = False

            # Reconfiguring must not stack handlers
            cls._logger.handlers.clear()

            if log_config.get("log_console", True):
                rich_handler = RichHandler(
                    console=cls._console,
                    show_time=True,
                    show_path=False,
                    markup=False,
                )
                rich_handler.setLevel(level)
                cls._logger.addHandler(rich_handler)

            log_file = log_config.get("log_file")
            if log_file:
                log_dir = os.path.dirname(log_file)
                if log_dir:
                    os.makedirs(log_dir, exist_ok=True)

                from logging.handlers import RotatingFileHandler
                file_handler = RotatingFileHandler(
                    log_file,
                    maxBytes=log_config.get("log_file_max_size", 10485760),
                    backupCount=log_config.get("log_file_num_backups", 5),
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                ))
                cls._logger.addHandler(file_handler)

        except Exception as e:
            # Fallback to basic logging
            cls._logger = logging.getLogger("speech_client")
            cls._logger.setLevel(logging.INFO)
            cls._logger.handlers.clear()
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            cls._logger.addHandler(handler)
            cls._logger.error(f"Failed to setup Rich logger: {e}")

    @classmethod
    def reconfigure(cls):
        """Rebuild handlers, e.g. after a new config file was loaded."""
        cls._setup_logger()

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger instance (class method)."""
        if cls._logger is None:
            cls._setup_logger()
        return cls._logger

    @classmethod
    def get_console(cls) -> Console:
        """Get console instance (class method)."""
        if cls._console is None:
            cls._setup_logger()
        return cls._console


# Convenience functions
def get_logger() -> logging.Logger:
    """Get logger instance."""
    return Logger.get_logger()


def get_console() -> Console:
    """Get Rich console instance."""
    return Logger.get_console()


def info(message: str, event_name: str = "speech_client"):
    """Log info message."""
    get_logger().info(f"[{event_name}] {message}")


def error(message: str, event_name: str = "speech_client", exc_info=False):
    """Log error message."""
    get_logger().error(f"[{event_name}] {message}", exc_info=exc_info)


def warning(message: str, event_name: str = "speech_client"):
    """Log warning message."""
    get_logger().warning(f"[{event_name}] {message}")


def debug(message: str, event_name: str = "speech_client"):
    """Log debug message."""
    get_logger().debug(f"[{event_name}] {message}")


def success(message: str, event_name: str = "speech_client"):
    """Log success message."""
    get_logger().info(f"[{event_name}] ✓ {message}")


class LoggerWrapper:
    """Wrapper class to provide logger-like interface."""

    def info(self, message: str, event_name: str = "speech_client"):
        info(message, event_name)

    def error(self, message: str, event_name: str = "speech_client", exc_info=False):
        error(message, event_name, exc_info=exc_info)

    def warning(self, message: str, event_name: str = "speech_client"):
        warning(message, event_name)

    def debug(self, message: str, event_name: str = "speech_client"):
        debug(message, event_name)

    def success(self, message: str, event_name: str = "speech_client"):
        success(message, event_name)


# Export logger instance for direct import
logger = LoggerWrapper()
