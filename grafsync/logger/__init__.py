"""Logger module for grafsync."""

from grafsync.logger.logger import Logger, LogWriter, get_logger, init_logger
from grafsync.logger.stream_writer import StreamWriter
from grafsync.logger.types import Category, Field, Level, LogEntry

__all__ = [
    "Logger",
    "LogWriter",
    "get_logger",
    "init_logger",
    "StreamWriter",
    "Category",
    "Level",
    "LogEntry",
    "Field",
]
