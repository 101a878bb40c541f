"""JSON-lines writer for stdout."""

import json
import sys
from typing import TextIO

from grafsync.logger.types import LogEntry


class StreamWriter:
    """Writes each entry as one JSON line to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def emit(self, entry: LogEntry) -> None:
        try:
            line = json.dumps(entry.to_dict(), default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            line = f"[{entry.level.value}] {entry.category}: {entry.message}"
        self.stream.write(line + "\n")
        self.stream.flush()

    async def close(self) -> None:
        self.stream.flush()
