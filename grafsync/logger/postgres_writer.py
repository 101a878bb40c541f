"""Batched PostgreSQL log sink."""

import asyncio
import contextlib
import json
import sys
import threading

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as Connection

from grafsync.logger.types import LogEntry

INSERT_QUERY = """
    INSERT INTO logs (
        timestamp, service_name, instance_id, node_name, environment,
        level, category, function_name, file_path, line_number,
        message, error_message, stack_trace, context,
        duration_ms, ingestion_time
    ) VALUES %s
"""


class PostgresWriter:
    """
    Buffers log entries and inserts them into the `logs` table in batches.

    emit() only appends to an in-memory buffer so it is safe to call from
    the watcher thread. Inserts happen in a background task every
    flush_interval seconds; if the database is unreachable the batch is
    dumped to stderr as JSON lines instead.
    """

    def __init__(
        self,
        dsn: str,
        batch_size: int = 100,
        flush_interval: float = 5.0,
    ) -> None:
        self.dsn = dsn
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.buffer: list[LogEntry] = []
        self._lock = threading.Lock()
        self._conn: Connection | None = None
        self._flush_task: asyncio.Task[None] | None = None
        self._closed = False

    async def connect(self) -> None:
        """Open the connection and start the background flush task."""
        try:
            self._conn = await asyncio.to_thread(psycopg2.connect, self.dsn)
            self._conn.set_session(autocommit=False)
        except Exception as e:
            print(f"[LOGGER ERROR] Failed to connect to PostgreSQL: {e}", file=sys.stderr)
            raise
        self._flush_task = asyncio.create_task(self._background_flush())

    def emit(self, entry: LogEntry) -> None:
        if self._closed:
            return
        with self._lock:
            self.buffer.append(entry)

    async def flush(self) -> None:
        with self._lock:
            batch, self.buffer = self.buffer, []
        if batch:
            await asyncio.to_thread(self._insert, batch)

    def _insert(self, batch: list[LogEntry]) -> None:
        if self._conn is None:
            self._fallback_to_stderr(batch)
            return

        values = [
            (
                entry.timestamp,
                entry.service_name,
                entry.instance_id,
                entry.node_name,
                entry.environment,
                entry.level.value,
                entry.category.value if entry.category else None,
                entry.function_name,
                entry.file_path,
                entry.line_number,
                entry.message,
                entry.error_message,
                entry.stack_trace,
                json.dumps(entry.context, default=str) if entry.context else None,
                entry.duration_ms,
                entry.ingestion_time,
            )
            for entry in batch
        ]

        try:
            with self._conn.cursor() as cursor:
                psycopg2.extras.execute_values(
                    cursor, INSERT_QUERY, values, page_size=self.batch_size
                )
            self._conn.commit()
        except psycopg2.Error as e:
            print(f"[LOGGER ERROR] Failed to insert logs into PostgreSQL: {e}", file=sys.stderr)
            self._conn.rollback()
            self._fallback_to_stderr(batch)

    @staticmethod
    def _fallback_to_stderr(batch: list[LogEntry]) -> None:
        for entry in batch:
            print(json.dumps(entry.to_dict(), default=str), file=sys.stderr)

    async def _background_flush(self) -> None:
        while not self._closed:
            try:
                await asyncio.sleep(self.flush_interval)
                await self.flush()
            except asyncio.CancelledError:
                break
            except Exception as e:
                print(f"[LOGGER ERROR] Background flush failed: {e}", file=sys.stderr)

    async def close(self) -> None:
        """Stop the flush task, write what is left and close the connection."""
        self._closed = True

        if self._flush_task:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task

        await self.flush()

        if self._conn:
            self._conn.close()
            self._conn = None
