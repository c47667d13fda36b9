import sys
from importlib import metadata

from loguru import logger

from cpuscope.errors.base import ErrorConfig, ErrorMessageMode, ErrorMode

__version__ = metadata.version("cpuscope")


def set_error_mode(mode: ErrorMode) -> None:
    """Set the error message mode for the package.

    Args:
        mode: Either 'developer' or 'user'
    """
    ErrorConfig.set_message_mode(mode)


class LoggingSetup:
    @staticmethod
    def set_logger_mode(mode: ErrorMode) -> None:
        match ErrorMessageMode(mode):
            case ErrorMessageMode.DEVELOPER:
                format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
                _ = logger.configure(handlers=[dict(sink=sys.stderr, level="DEBUG", format=format)])  # pyright: ignore [reportArgumentType]
            case ErrorMessageMode.USER:
                format = "<level>{level: <8}</level> - <level>{message}</level>"
                _ = logger.configure(handlers=[dict(sink=sys.stderr, level="INFO", format=format)])  # pyright: ignore [reportArgumentType]


# Default to user mode
LoggingSetup.set_logger_mode("user")
