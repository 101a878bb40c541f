"""Types and constants for structured logging."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Level(str, Enum):
    """Severity of a log entry."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @classmethod
    def parse(cls, value: str | None, default: "Level") -> "Level":
        """Parse a level name, falling back to default for unknown names."""
        if not value:
            return default
        value = value.strip().lower()
        if value == "warning":
            value = "warn"
        try:
            return cls(value)
        except ValueError:
            return default


_LEVEL_RANK = {
    Level.TRACE: 0,
    Level.DEBUG: 1,
    Level.INFO: 2,
    Level.WARN: 3,
    Level.ERROR: 4,
    Level.FATAL: 5,
}


class Category(str, Enum):
    """Groups log entries by the subsystem that produced them."""

    GRAFANA = "grafana"  # Outbound Grafana HTTP API
    KUBERNETES = "kubernetes"  # ConfigMap list/watch
    MESSENGER = "messenger"  # Redis Streams event source
    RECONCILE = "reconcile"  # ConfigObject -> create calls
    FOLDERS = "folders"  # Folder bootstrap sync
    HOMEPAGE = "homepage"  # Home dashboard sequence
    DATABASE = "database"  # Log sink


@dataclass
class LogEntry:
    """A single log record handed to a writer."""

    timestamp: datetime
    service_name: str
    instance_id: str
    environment: str
    level: Level
    message: str
    ingestion_time: datetime = field(default_factory=datetime.utcnow)
    node_name: str | None = None
    category: Category | None = None
    function_name: str | None = None
    file_path: str | None = None
    line_number: int | None = None
    error_message: str | None = None
    stack_trace: str | None = None
    context: dict[str, Any] | None = None
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "category": self.category.value if self.category else None,
            "message": self.message,
            "service_name": self.service_name,
            "environment": self.environment,
            "instance_id": self.instance_id,
        }
        if self.function_name:
            data["caller"] = f"{self.file_path}:{self.line_number} {self.function_name}"
        if self.error_message:
            data["error"] = self.error_message
        if self.stack_trace:
            data["stack_trace"] = self.stack_trace
        if self.context:
            data["context"] = self.context
        if self.duration_ms is not None:
            data["duration_ms"] = self.duration_ms
        return data


@dataclass
class Field:
    """Key/value pair attached to a log entry."""

    key: str
    value: Any


def category(cat: Category) -> Field:
    """Override the logger category for a single entry."""
    return Field(key="_category", value=cat)


def param(key: str, value: Any) -> Field:
    return Field(key=key, value=value)


def duration_ms(value: int) -> Field:
    return Field(key="duration_ms", value=value)
