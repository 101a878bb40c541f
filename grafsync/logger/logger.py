"""Structured logger with pluggable writers."""

import inspect
import os
import sys
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from grafsync.logger.types import Category, Field, Level, LogEntry


class LogWriter(Protocol):
    """Destination for log entries."""

    def emit(self, entry: LogEntry) -> None: ...

    async def close(self) -> None: ...


class Logger:
    """Logger producing LogEntry records with caller info and typed fields."""

    def __init__(
        self,
        service_name: str,
        environment: str,
        writer: LogWriter | None = None,
        min_level: Level = Level.INFO,
    ) -> None:
        """
        Initialize Logger.

        Args:
            service_name: Service name stamped on every entry
            environment: Deployment environment (dev, stage, prod)
            writer: Destination for entries; stdout fallback when None
            min_level: Entries below this level are dropped
        """
        self.service_name = service_name
        self.environment = environment
        self.writer = writer
        self.min_level = min_level
        self.instance_id = self._get_instance_id()
        self.node_name = os.getenv("NODE_NAME")

        self._fields: dict[str, Any] = {}
        self._category: Category | None = None

    def trace(self, msg: str, *fields: Field) -> None:
        self._log(Level.TRACE, msg, None, *fields)

    def debug(self, msg: str, *fields: Field) -> None:
        self._log(Level.DEBUG, msg, None, *fields)

    def info(self, msg: str, *fields: Field) -> None:
        self._log(Level.INFO, msg, None, *fields)

    def warn(self, msg: str, *fields: Field) -> None:
        self._log(Level.WARN, msg, None, *fields)

    def error(self, msg: str, err: Exception | None = None, *fields: Field) -> None:
        self._log(Level.ERROR, msg, err, *fields)

    def fatal(self, msg: str, err: Exception | None = None, *fields: Field) -> None:
        """Log fatal level message and exit."""
        self._log(Level.FATAL, msg, err, *fields)
        raise SystemExit(1)

    def _log(
        self,
        level: Level,
        msg: str,
        err: Exception | None,
        *fields: Field,
    ) -> None:
        if level.rank < self.min_level.rank:
            return

        # Two frames up: _log <- info/warn/... <- caller
        frame = inspect.currentframe()
        caller_frame = frame.f_back.f_back if frame and frame.f_back else None

        function_name = None
        file_path = None
        line_number = None
        if caller_frame:
            function_name = caller_frame.f_code.co_name
            file_path = self._clean_file_path(caller_frame.f_code.co_filename)
            line_number = caller_frame.f_lineno

        context: dict[str, Any] = dict(self._fields)
        entry_category = self._category
        for field in fields:
            if field.key == "_category":
                if isinstance(field.value, Category):
                    entry_category = field.value
                continue
            context[field.key] = field.value

        duration = context.pop("duration_ms", None)

        entry = LogEntry(
            timestamp=datetime.utcnow(),
            service_name=self.service_name,
            instance_id=self.instance_id,
            node_name=self.node_name,
            environment=self.environment,
            level=level,
            category=entry_category,
            function_name=function_name,
            file_path=file_path,
            line_number=line_number,
            message=msg,
            context=context or None,
            duration_ms=int(duration) if duration is not None else None,
        )

        if err is not None:
            entry.error_message = str(err) or type(err).__name__
            if level in (Level.ERROR, Level.FATAL):
                entry.stack_trace = "".join(
                    traceback.format_exception(type(err), err, err.__traceback__)
                )

        if self.writer is None:
            print(f"[{entry.level.value}] {entry.category}: {entry.message}")
            return

        try:
            self.writer.emit(entry)
        except Exception as write_err:
            print(f"[LOGGER ERROR] Failed to write log: {write_err}", file=sys.stderr)

    def with_category(self, category: Category) -> "Logger":
        """Return a copy of this logger bound to a category."""
        new_logger = self._copy()
        new_logger._category = category
        return new_logger

    def with_fields(self, *fields: Field) -> "Logger":
        """Return a copy of this logger with extra context fields."""
        new_logger = self._copy()
        for field in fields:
            new_logger._fields[field.key] = field.value
        return new_logger

    def _copy(self) -> "Logger":
        new_logger = Logger(
            self.service_name, self.environment, self.writer, self.min_level
        )
        new_logger.instance_id = self.instance_id
        new_logger.node_name = self.node_name
        new_logger._fields = dict(self._fields)
        new_logger._category = self._category
        return new_logger

    @staticmethod
    def _get_instance_id() -> str:
        # Pod name inside Kubernetes
        if hostname := os.getenv("HOSTNAME"):
            return hostname
        return str(uuid.uuid4())

    @staticmethod
    def _clean_file_path(file_path: str) -> str:
        """Strip everything before the package directory."""
        parts = Path(file_path).parts
        if "grafsync" in parts:
            idx = parts.index("grafsync")
            return str(Path(*parts[idx:]))
        return Path(file_path).name


_global_logger: Logger | None = None


def get_logger() -> Logger:
    """Return the process-wide logger."""
    if _global_logger is None:
        raise RuntimeError("Logger not initialized. Call init_logger() first.")
    return _global_logger


def init_logger(
    service_name: str,
    environment: str,
    writer: LogWriter | None = None,
    min_level: Level = Level.INFO,
) -> Logger:
    """
    Initialize the process-wide logger.

    Args:
        service_name: Service name
        environment: Deployment environment (dev, stage, prod)
        writer: Destination for log entries
        min_level: Minimum level that reaches the writer

    Returns:
        Logger instance
    """
    global _global_logger
    _global_logger = Logger(service_name, environment, writer, min_level)
    return _global_logger
