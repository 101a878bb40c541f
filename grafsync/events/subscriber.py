"""Redis Streams event source."""

import asyncio
from typing import Any

from redis.exceptions import RedisError

from grafsync.domain.config_object import ConfigObject
from grafsync.events.client import RedisClient
from grafsync.events.source import ObjectHandler
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, param


class StreamSubscriber:
    """
    Reads ConfigObject snapshots from a Redis stream through a consumer group.

    Each message carries `namespace`, `name`, `annotations` (JSON object)
    and `data` (JSON object). Messages are read in batches but handled one
    at a time, and ACKed after the handler returns. A message whose handler
    raised stays in the pending list.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        consumer_group: str,
        stream: str,
        block_ms: int = 5000,
    ) -> None:
        """
        Initialize StreamSubscriber.

        Args:
            redis_client: Redis client instance
            consumer_group: Consumer group name (e.g. "grafsync-dev")
            stream: Stream name
            block_ms: XREADGROUP block time; bounds how long stop() waits
        """
        self.redis_client = redis_client
        self.consumer_group = consumer_group
        self.stream = stream
        self.block_ms = block_ms
        self.consumer_name = f"{consumer_group}-consumer-{id(self)}"
        self._stopped = False
        self.logger = get_logger().with_category(Category.MESSENGER)

    async def consume(self, handler: ObjectHandler) -> None:
        redis = self.redis_client.get_redis()
        await self.redis_client.ensure_group(self.stream, self.consumer_group)

        self.logger.info(
            "Starting stream consumer",
            param("group", self.consumer_group),
            param("stream", self.stream),
        )

        while not self._stopped:
            try:
                messages = await redis.xreadgroup(
                    groupname=self.consumer_group,
                    consumername=self.consumer_name,
                    streams={self.stream: ">"},
                    count=10,
                    block=self.block_ms,
                )
            except RedisError as e:
                self.logger.error("Error reading stream", e)
                await asyncio.sleep(5)
                continue

            for _stream, stream_messages in messages or []:
                for message_id, message_data in stream_messages:
                    if self._stopped:
                        break
                    await self._handle_message(message_id, message_data, handler)

        self.logger.info("Stream consumer stopped")

    async def _handle_message(
        self,
        message_id: str,
        message_data: dict[str, Any],
        handler: ObjectHandler,
    ) -> None:
        obj = ConfigObject.from_event_data(message_data)
        try:
            await handler(obj)
        except Exception as e:
            self.logger.error(
                "Failed to handle stream message",
                e,
                param("message_id", message_id),
                param("object", obj.key),
            )
            return

        await self.redis_client.get_redis().xack(self.stream, self.consumer_group, message_id)
        self.logger.debug(
            "Message processed and ACKed",
            param("message_id", message_id),
            param("object", obj.key),
        )

    async def stop(self) -> None:
        self.logger.info("Stopping stream consumer...")
        self._stopped = True
