"""Messenger (Redis) connection used by the stream event source."""

import asyncio
from typing import TYPE_CHECKING

import redis.asyncio as redis_async
from redis.asyncio.client import Redis
from redis.exceptions import RedisError, ResponseError

from grafsync.errors import EventSourceError
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, param

if TYPE_CHECKING:
    from grafsync.config.settings import RedisConfig

MAX_CONNECT_DELAY = 30.0


class RedisClient:
    """
    Owns the messenger connection and the consumer group on its stream.

    connect() keeps trying with doubling delays because the messenger is
    often started alongside grafsync and may not accept connections yet.
    """

    def __init__(
        self,
        config: "RedisConfig",
        max_retries: int = 10,
        initial_delay: float = 1.0,
    ) -> None:
        self.config = config
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.redis: Redis | None = None
        self.logger = get_logger().with_category(Category.MESSENGER)

    @property
    def address(self) -> str:
        return f"{self.config.host}:{self.config.port}/{self.config.db}"

    async def connect(self) -> Redis:
        """
        Open and ping a connection.

        Returns:
            The connected client, also kept on self.redis

        Raises:
            EventSourceError: if no attempt succeeded
        """
        delay = self.initial_delay
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                self.redis = await self._open()
            except (RedisError, OSError) as e:
                last_error = e
                if attempt == self.max_retries:
                    break
                self.logger.warn(
                    f"Messenger connection attempt {attempt}/{self.max_retries} failed",
                    param("address", self.address),
                    param("delay", delay),
                    param("error", str(e)),
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_CONNECT_DELAY)
                continue
            return self.redis

        self.logger.error(
            "Messenger unreachable",
            last_error,
            param("address", self.address),
            param("attempts", self.max_retries),
        )
        raise EventSourceError(
            f"Messenger at {self.address} unreachable after {self.max_retries} attempts"
        )

    async def _open(self) -> Redis:
        client = redis_async.Redis(
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
            password=self.config.password,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
        )
        try:
            await client.ping()  # type: ignore[misc]
        except BaseException:
            await client.aclose()
            raise
        return client

    async def ensure_group(self, stream: str, group: str) -> bool:
        """
        Create the consumer group (and the stream) if missing.

        Returns:
            True if the group was created, False if it already existed
        """
        try:
            await self.get_redis().xgroup_create(name=stream, groupname=group, id="0", mkstream=True)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            return False
        self.logger.info("Created consumer group", param("group", group), param("stream", stream))
        return True

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    def get_redis(self) -> Redis:
        if self.redis is None:
            raise RuntimeError("RedisClient not connected. Call connect() first.")
        return self.redis
