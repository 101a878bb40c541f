"""Tests for the structured logger and stream writer."""

import io
import json

import pytest

from grafsync.logger import Category, Level, Logger, StreamWriter
from grafsync.logger.types import LogEntry, category, duration_ms, param


class ListWriter:
    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def emit(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    async def close(self) -> None:
        pass


@pytest.fixture
def writer() -> ListWriter:
    return ListWriter()


class TestLogger:
    def test_min_level_filters(self, writer) -> None:
        logger = Logger("svc", "test", writer, min_level=Level.WARN)

        logger.debug("hidden")
        logger.info("hidden")
        logger.warn("shown")
        logger.error("shown too")

        assert [e.level for e in writer.entries] == [Level.WARN, Level.ERROR]

    def test_category_and_fields(self, writer) -> None:
        logger = Logger("svc", "test", writer).with_category(Category.GRAFANA)
        logger = logger.with_fields(param("url", "http://grafana"))

        logger.info("Created", param("key", "a.json"), duration_ms(12))
        logger.info("Overridden", category(Category.FOLDERS))

        first, second = writer.entries
        assert first.category == Category.GRAFANA
        assert first.context == {"url": "http://grafana", "key": "a.json"}
        assert first.duration_ms == 12
        assert second.category == Category.FOLDERS
        assert "_category" not in (second.context or {})

    def test_with_category_does_not_mutate_parent(self, writer) -> None:
        parent = Logger("svc", "test", writer)
        parent.with_category(Category.HOMEPAGE)

        parent.info("plain")

        assert writer.entries[0].category is None

    def test_error_carries_stack_trace(self, writer) -> None:
        logger = Logger("svc", "test", writer)
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            logger.error("Failed to create a.json", e)
            logger.warn("just a warning")

        entry = writer.entries[0]
        assert entry.error_message == "bad payload"
        assert "ValueError" in entry.stack_trace
        assert entry.function_name == "test_error_carries_stack_trace"

    def test_fatal_exits(self, writer) -> None:
        logger = Logger("svc", "test", writer)
        with pytest.raises(SystemExit):
            logger.fatal("cannot continue")
        assert writer.entries[0].level == Level.FATAL

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("debug", Level.DEBUG), ("WARNING", Level.WARN), ("", Level.INFO), ("loud", Level.INFO)],
    )
    def test_level_parse(self, raw: str, expected: Level) -> None:
        assert Level.parse(raw, Level.INFO) == expected


class TestStreamWriter:
    def test_writes_json_lines(self) -> None:
        stream = io.StringIO()
        logger = Logger("grafsync", "test", StreamWriter(stream))

        logger.with_category(Category.RECONCILE).info("Created a.json", param("folder_id", 7))
        logger.info("second")

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        record = json.loads(lines[0])
        assert record["level"] == "info"
        assert record["category"] == "reconcile"
        assert record["message"] == "Created a.json"
        assert record["context"] == {"folder_id": 7}
        assert record["service_name"] == "grafsync"
